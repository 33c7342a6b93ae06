"""Prompts and the JSON schema sent to search providers."""
import copy

COUPON_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "code": {
            "type": "string",
            "description": "The actual coupon code",
        },
        "discount": {
            "type": "string",
            "description": "The discount amount",
        },
        "description": {
            "type": "string",
            "description": "Description of what the coupon is for",
        },
        "expiresIn": {
            "type": "string",
            "description": 'When it expires or "Unknown" if not specified',
        },
        "verified": {
            "type": "boolean",
            "description": "Whether the source claims it is verified/working",
        },
        "restrictions": {
            "type": "string",
            "description": 'Any restrictions mentioned like "Team plan only"',
        },
    },
    "required": ["code", "discount", "description", "expiresIn", "verified"],
    "additionalProperties": False,
}

COUPON_SCHEMA = {
    "type": "object",
    "properties": {
        "coupons": {
            "type": "array",
            "items": COUPON_ITEM_SCHEMA,
        },
    },
}


def coupon_schema(with_summary: bool = False) -> dict:
    """Schema for the provider answer, optionally requiring a search summary."""
    schema = copy.deepcopy(COUPON_SCHEMA)
    if with_summary:
        schema["properties"]["search_summary"] = {
            "type": "string",
            "description": "Brief summary of what you found in your search",
        }
        schema["required"] = ["coupons", "search_summary"]
        schema["additionalProperties"] = False
    return schema


def system_prompt(domain: str) -> str:
    return f"""You are a coupon code extraction expert and a web scraper.:
1. Scrap the web for current and active coupon codes for {domain} valid for the USA
CRITICAL REQUIREMENTS:
- Search for any source where you might find the deals
- EXTRACT actual coupon codes from search results
- EXTRACT discount amounts from the text
- Use web_fetch to scrape coupon sites when codes are found in search
- Return ONLY codes that are currently active/verified
- Ignore if coupon code is Not explicitly given and you cannot scrap it"""


def user_prompt(domain: str) -> str:
    return f"Make an exhaustive research to find discount codes for {domain}"
