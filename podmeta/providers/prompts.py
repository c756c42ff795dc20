"""Prompt templates sent with every vision request."""

from podmeta.metadata.models import Marketplace, get_rules

SYSTEM_INSTRUCTION = """You are a world-class SEO specialist for Print-on-Demand (POD) platforms like Spreadshirt, TeePublic and Zazzle.
Your primary goal is to generate metadata that maximizes search visibility.
Strictly adhere to platform constraints. Return ONLY valid JSON.

CRITICAL: NEVER include the words 'T-Shirt', 'Shirt', 'Hoodie', or any other garment/product names in the title, description, or tags. The platform adds these automatically. Focus exclusively on the design subject, style, and niche."""


def build_user_prompt(marketplace: Marketplace) -> str:
    """Per-marketplace analysis prompt, including the JSON shape to return."""
    rules = get_rules(marketplace)
    tag_count = rules.tag_floor or rules.tag_ceiling

    lines = [f"Analyze this artwork and provide optimized SEO metadata for {marketplace.value}:"]
    lines.append(f"- title: catchy searchable title, max {rules.title_max} characters")
    lines.append(f"- description: engaging product description, max {rules.description_max} characters")
    if rules.requires_main_tag:
        lines.append("- mainTag: the single most important niche keyword")
        lines.append(
            f"- tags: exactly {tag_count} secondary keywords in an array, "
            "none of them repeating the mainTag"
        )
    elif rules.tag_floor is not None:
        lines.append(f"- tags: exactly {tag_count} niche-specific keywords in an array")
    else:
        lines.append(f"- tags: up to {tag_count} niche-specific keywords in an array")

    keys = '"title", "description", "tags"'
    if rules.requires_main_tag:
        keys += ', "mainTag"'
    lines.append(f"Return a JSON object with the keys {keys}.")
    return "\n".join(lines)


def build_messages(marketplace: Marketplace, image_data_uri: str) -> list[dict]:
    """OpenAI-compatible messages: system instruction + text prompt + inline image."""
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": build_user_prompt(marketplace)},
                {"type": "image_url", "image_url": {"url": image_data_uri}},
            ],
        },
    ]
