from typing import Any, List
from .models import Attachment, ImageAttachment, TextAttachment

def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) and value else default

def normalize_attachments(raw: Any) -> List[Attachment]:
    """
    Reshape caller-supplied attachment descriptors into ImageAttachment/TextAttachment.
    Entries of an unknown type or missing their payload field are dropped, not rejected.
    """
    if not isinstance(raw, list):
        return []
    out: List[Attachment] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        kind = item.get("type")
        if kind == "image" and _text(item.get("data")):
            out.append(ImageAttachment(
                filename=_text(item.get("filename"), "image.png"),
                data=item["data"],
                description=_text(item.get("description")),
            ))
        elif kind == "text" and _text(item.get("content")):
            out.append(TextAttachment(
                filename=_text(item.get("filename"), "document.txt"),
                content=item["content"],
                description=_text(item.get("description")),
            ))
    return out
