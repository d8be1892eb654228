from typing import List, Optional
from .models import Attachment, ImageAttachment

SYSTEM_PROMPT = (
    "You are an expert web developer. Generate complete HTML apps with inline CSS and JS. "
    "Return ONLY HTML code."
)

MISSING_PREVIOUS = "(previous version unavailable)"

def _attachment_lines(attachments: List[Attachment]) -> str:
    lines = []
    for idx, att in enumerate(attachments, start=1):
        if isinstance(att, ImageAttachment):
            lines.append(f"\n{idx}. Image: {att.filename} - {att.description}")
        else:
            lines.append(f"\n{idx}. From {att.filename}:\n{att.content}\n")
    return "".join(lines)

def build_prompt(brief: str, attachments: List[Attachment], round: int = 1, existing_html: Optional[str] = None) -> str:
    if round <= 1:
        prompt = f"Create a fully functional single-page web app based on this brief:\n\n{brief}\n\n"
        if attachments:
            prompt += "Additional Requirements:\n" + _attachment_lines(attachments)
        return prompt + "\nProvide ONLY the HTML code with inline CSS and JS."

    previous = existing_html if existing_html else MISSING_PREVIOUS
    return (
        f"You are updating this web app:\n\n{previous}\n\n"
        f"Update brief:\n{brief}\n\n"
        "Return full updated HTML."
    )
