import re

# finditer pairs each opening fence with its own closing fence
_FENCE_RE = re.compile(r"```([\w+.-]*)[ \t]*\r?\n([\s\S]*?)\r?\n```")

SHELL = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Generated App</title>
</head>
<body>
{body}
</body>
</html>"""

def _unfence(text: str) -> str:
    """
    First ```html block wins, then the first untagged block. Blocks tagged with another
    language (css, js, ...) are never taken as the page, and an unterminated fence leaves
    the text untouched.
    """
    blocks = [(m.group(1).lower(), m.group(2)) for m in _FENCE_RE.finditer(text)]
    for wanted in ("html", ""):
        for tag, body in blocks:
            if tag == wanted:
                return body
    return text

def is_document(html: str) -> bool:
    head = html.lstrip().lower()
    return head.startswith("<!doctype") or head.startswith("<html")

def extract_html(llm_output: str) -> str:
    """Pull an HTML document out of raw model output, wrapping bare fragments in a minimal page."""
    html = _unfence((llm_output or "").strip()).strip()
    if not is_document(html):
        html = SHELL.format(body=html)
    return html
