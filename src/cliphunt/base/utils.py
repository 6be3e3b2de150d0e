import re
import uuid


def generate_random_name(suffix=".mp4"):
    """Generates random name."""
    return f"{uuid.uuid4()}{suffix}"


def slugify(text: str, fallback: str = "clip") -> str:
    """Lowercase `text` and replace every non-alphanumeric character with an underscore."""
    slug = re.sub(r"[^a-z0-9]", "_", text.lower())
    return slug if slug.strip("_") else fallback
