from flask import current_app
from errors import ValidationFailed
import logging
import os
import uuid

MAX_IMAGE_SIZE = 5 * 1024 * 1024 # 5MB

ALLOWED_TYPES = {
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/png': 'png',
    'image/gif': 'gif',
    'image/webp': 'webp',
}

MIME_TYPES = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
}


def upload_dir():
    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    return folder


def _extension(file):
    name = file.filename or ''
    ext = name.rsplit('.', 1)[-1].lower() if '.' in name else ''
    if ext not in MIME_TYPES:
        ext = ALLOWED_TYPES[file.mimetype]
    return ext


def save_image(file):
    """Store an uploaded image under a random id and describe where to fetch it."""
    if file is None or not file.filename:
        raise ValidationFailed('Please choose a file to upload', field='file')

    if file.mimetype not in ALLOWED_TYPES:
        logging.warning(f"Rejected upload of type {file.mimetype}")
        raise ValidationFailed('Unsupported file type, only JPEG, PNG, GIF and WebP are allowed', field='file')

    content = file.read()
    if len(content) > MAX_IMAGE_SIZE:
        logging.warning(f"Rejected upload of {len(content)} bytes")
        raise ValidationFailed('File is too large, the limit is 5MB', field='file')

    image_id = str(uuid.uuid4())
    ext = _extension(file)
    file_name = f"{image_id}.{ext}"
    with open(os.path.join(upload_dir(), file_name), 'wb') as handle:
        handle.write(content)

    return {
        'uuid': image_id,
        'file_name': file_name,
        'original_name': file.filename,
        'size': len(content),
        'type': file.mimetype,
        'url': f"{current_app.config['ENDPOINT_URL'].rstrip('/')}/api/images/{image_id}",
        'local_path': f"/uploads/{file_name}",
    }


def find_image(image_id):
    """Return (path, mimetype) for a stored image, or None."""
    folder = current_app.config['UPLOAD_FOLDER']
    for ext in ('jpg', 'jpeg', 'png', 'gif', 'webp'):
        path = os.path.join(folder, f"{image_id}.{ext}")
        if os.path.exists(path):
            return path, MIME_TYPES[ext]
    return None
