import base64
import time
from io import BytesIO

from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

import firebase_setup
import settings
from api_helpers import ApiError

INLINE_MAX_SIZE = (800, 800)
INLINE_JPEG_QUALITY = 70


def validate_image(file_storage) -> bytes:
    if file_storage is None or not file_storage.filename:
        raise ApiError('No file uploaded', 400)
    if not (file_storage.mimetype or '').startswith('image/'):
        raise ApiError('Only image files are allowed', 400)

    payload = file_storage.read()
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise ApiError('File size must be less than 5MB', 400)
    return payload


def upload_to_storage(payload: bytes, path: str, content_type: str, uploaded_by: str) -> str:
    bucket = firebase_setup.get_storage_bucket()
    if bucket is None:
        raise RuntimeError('Storage not available')

    blob = bucket.blob(path)
    blob.metadata = {
        'uploadedBy': uploaded_by,
        'uploadedAt': time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
    }
    blob.upload_from_string(payload, content_type=content_type)
    blob.make_public()
    return f'https://storage.googleapis.com/{bucket.name}/{path}'


def inline_image(payload: bytes) -> str:
    """Shrink the image into a data URL small enough for a Firestore string field."""
    try:
        image = Image.open(BytesIO(payload))
        image = image.convert('RGB')
    except (UnidentifiedImageError, OSError) as exc:
        raise ApiError('Uploaded file is not a readable image', 400, exc)

    # thumbnail() never enlarges
    image.thumbnail(INLINE_MAX_SIZE)
    buffer = BytesIO()
    image.save(buffer, format='JPEG', quality=INLINE_JPEG_QUALITY)
    encoded = base64.b64encode(buffer.getvalue()).decode('ascii')

    if len(encoded) > settings.INLINE_IMAGE_MAX_CHARS:
        raise ApiError('Image is too large even after compression. Please reduce the image size.', 400)

    return f'data:image/jpeg;base64,{encoded}'


def store_image(file_storage, folder: str, uploaded_by: str, allow_inline: bool = True) -> str:
    payload = validate_image(file_storage)
    filename = secure_filename(file_storage.filename) or 'image'
    path = f'{folder}/{int(time.time() * 1000)}_{filename}'

    try:
        return upload_to_storage(payload, path, file_storage.mimetype, uploaded_by)
    except Exception as exc:
        if not allow_inline:
            raise
        print(f"[WARN] Storage upload failed, storing compressed image inline: {exc}")

    return inline_image(payload)
