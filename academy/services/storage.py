from datetime import timedelta
from academy.firebase_init import get_bucket

IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'webp'}
MAX_IMAGE_BYTES = 2 * 1024 * 1024


class StorageUnavailable(ValueError):
    """No storage bucket is configured for uploads."""


def _require_bucket():
    bucket = get_bucket()
    if bucket is None:
        raise StorageUnavailable('File uploads are not available right now.')
    return bucket


def image_content_type(ext):
    return 'image/jpeg' if ext in ('jpg', 'jpeg') else f'image/{ext}'


def upload_file(file_data, destination_path, content_type=None):
    """Upload file bytes to Firebase Storage.

    Args:
        file_data: bytes or file-like object
        destination_path: path in the bucket (e.g. 'users/uid/profile.png')
        content_type: MIME type

    Returns:
        The storage path (same as destination_path)
    """
    bucket = _require_bucket()
    blob = bucket.blob(destination_path)
    if content_type:
        blob.content_type = content_type
    if isinstance(file_data, bytes):
        blob.upload_from_string(file_data, content_type=content_type)
    else:
        blob.upload_from_file(file_data, content_type=content_type)
    return destination_path


def get_signed_url(storage_path, expiration_minutes=60 * 24 * 7):
    """Get a signed URL for temporary access, or None if the blob is missing."""
    bucket = _require_bucket()
    blob = bucket.blob(storage_path)
    if not blob.exists():
        return None
    return blob.generate_signed_url(
        version='v4',
        expiration=timedelta(minutes=expiration_minutes),
        method='GET'
    )


def upload_profile_image(uid, file_data, ext):
    """Upload user profile image. Returns the storage path."""
    path = f'users/{uid}/profile.{ext}'
    return upload_file(file_data, path, image_content_type(ext))


def upload_course_thumbnail(course_id, file_data, ext):
    """Upload a course thumbnail. Returns the storage path."""
    path = f'courses/{course_id}/thumbnail.{ext}'
    return upload_file(file_data, path, image_content_type(ext))


def read_image_upload(file):
    """Validate an uploaded image. Returns (bytes, ext) or raises ValueError."""
    ext = file.filename.rsplit('.', 1)[1].lower() if '.' in file.filename else ''
    if ext not in IMAGE_EXTENSIONS:
        raise ValueError('Only PNG, JPG and WEBP images can be uploaded.')
    data = file.read()
    if len(data) > MAX_IMAGE_BYTES:
        raise ValueError('Images must be 2MB or smaller.')
    return data, ext
