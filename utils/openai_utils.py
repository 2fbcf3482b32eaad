"""Shared helpers for building OpenAI requests and reading responses."""


def strict_schema(schema: dict) -> dict:
    """Mark every property required and forbid extra keys, nested $defs included.

    Structured Outputs in strict mode rejects schemas with optional properties or
    open objects. Applied via: model_config = ConfigDict(json_schema_extra=strict_schema)
    """
    schema["required"] = list(schema.get("properties", {}).keys())
    schema["additionalProperties"] = False
    for defn in schema.get("$defs", {}).values():
        defn["required"] = list(defn.get("properties", {}).keys())
        defn.setdefault("additionalProperties", False)
    return schema


def system_message(content: str) -> dict:
    return {"role": "system", "content": content}


def user_message(*parts: dict) -> dict:
    return {"role": "user", "content": list(parts)}


def text_part(text: str) -> dict:
    return {"type": "text", "text": text}


def image_part(data_url: str, detail: str = "high") -> dict:
    return {"type": "image_url", "image_url": {"url": data_url, "detail": detail}}


def response_text(response) -> str:
    """First choice's message content; "" when the model returned nothing."""
    if not response.choices:
        return ""
    return response.choices[0].message.content or ""
