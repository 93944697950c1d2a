"""Static HTML pages for the upload form and the upload result."""
import html

from .schemas import FILE_TTL_MINUTES, MAX_UPLOAD_BYTES, UploadResult

_HEAD = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <link href="https://fonts.googleapis.com/css2?family=Courier+Prime:ital,wght@0,400;0,700;1,400;1,700&display=swap"
        rel="stylesheet">
  <style>
    body {{
      font-family: 'Courier Prime', sans-serif;
      background-color: Canvas;
      color: CanvasText;
      color-scheme: light dark;
    }}
  </style>
</head>
"""


def _lifetime_text(ttl_minutes: int) -> str:
    if ttl_minutes % 60 == 0:
        hours = ttl_minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{ttl_minutes} minutes"


def render_upload_form(max_upload_bytes: int = MAX_UPLOAD_BYTES) -> str:
    max_mb = max_upload_bytes // (1024 * 1024)
    return _HEAD.format(title="Upload File") + f"""<body>
  <h1>Upload File</h1>
  <p>Max Upload Size : {max_mb}MB</p>
  <form enctype="multipart/form-data" action="/upload" method="post">
    <input type="file" name="file" required>
    <input type="submit" value="Upload">
  </form>
</body>
</html>
"""


def render_upload_result(result: UploadResult, ttl_minutes: int = FILE_TTL_MINUTES) -> str:
    safe_name = html.escape(result.file_name)
    safe_link = html.escape(result.download_url, quote=True)
    return _HEAD.format(title="File Uploaded") + f"""<body>
  <h1>File Uploaded Successfully</h1>
  <p>Your file has been uploaded and renamed to <strong>{safe_name}</strong>.</p>
  <p>File links are only valid for {_lifetime_text(ttl_minutes)}.</p>
  <p><a href="{safe_link}">Download</a></p>
</body>
</html>
"""
