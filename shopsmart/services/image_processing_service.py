"""
Upload handling for product images.

Takes a Werkzeug FileStorage from request.files, enforces type and size,
stores it under a generated filename in uploads/ and renders the thumbnail
variant with Pillow. The resulting relative path is what product records
store.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Optional

from flask import current_app
from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage

from shopsmart.exceptions import ImageUploadError
from shopsmart.metrics import product_images_uploaded_total
from shopsmart.services.image_storage_service import (
    ORIGINAL, THUMBNAIL, ImageStorageService, extract_filename_from_path,
    generate_unique_filename, get_image_storage, get_relative_image_path
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_SIZE = 5 * 1024 * 1024


def _check_upload(file: Optional[FileStorage]) -> int:
    """
    Validate type and size of an incoming upload.

    Returns:
        Size of the upload in bytes

    Raises:
        ImageUploadError: If the upload must be rejected
    """
    if not file or not file.filename:
        raise ImageUploadError('No file provided', 'No image file provided')

    allowed_types = current_app.config.get('ALLOWED_IMAGE_TYPES', set())
    if allowed_types and file.mimetype not in allowed_types:
        raise ImageUploadError(
            'Invalid file type',
            'Invalid file type. Only JPEG, PNG, WebP, and GIF images are allowed.'
        )

    max_size = current_app.config.get('MAX_IMAGE_SIZE', DEFAULT_MAX_IMAGE_SIZE)
    file.stream.seek(0, os.SEEK_END)
    file_size = file.stream.tell()
    file.stream.seek(0)

    if file_size > max_size:
        raise ImageUploadError(
            'File too large',
            f"File size must be less than {max_size / (1024 * 1024):g}MB"
        )
    if file_size == 0:
        raise ImageUploadError('Empty file', 'Uploaded file is empty')

    return file_size


def validate_uploaded_image(absolute_path: str) -> Dict:
    """
    Check that a stored upload is on disk and decodes as an image.

    Returns:
        {'success': bool, 'errors': [str]}
    """
    errors = []

    if not os.path.isfile(absolute_path):
        errors.append('Uploaded file not found')
        return {'success': False, 'errors': errors}

    try:
        with Image.open(absolute_path) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        errors.append(f"File is not a valid image: {e}")

    return {'success': not errors, 'errors': errors}


def create_thumbnail(storage: ImageStorageService, filename: str) -> Optional[str]:
    """
    Render the thumbnail variant of a stored original.

    Returns:
        Absolute path of the thumbnail, or None if it could not be created
    """
    source = storage.get_absolute_image_path(filename, ORIGINAL)
    target = storage.get_absolute_image_path(filename, THUMBNAIL)
    size = tuple(current_app.config.get('THUMBNAIL_SIZE', (300, 300)))
    quality = current_app.config.get('IMAGE_QUALITY', {})

    try:
        with Image.open(source) as img:
            image_format = img.format or 'JPEG'
            thumb = img.copy()
            thumb.thumbnail(size)

            if image_format == 'PNG':
                thumb.save(target, format='PNG', compress_level=quality.get('PNG', 9))
            elif image_format == 'WEBP':
                thumb.save(target, format='WEBP', quality=quality.get('WEBP', 80))
            elif image_format == 'GIF':
                thumb.save(target, format='GIF')
            else:
                thumb = thumb.convert('RGB')
                thumb.save(target, format='JPEG', quality=quality.get('JPEG', 85))
        return target
    except (UnidentifiedImageError, OSError, ValueError) as e:
        # The original stays usable without a thumbnail
        logger.warning(f"[IMAGES] Could not create thumbnail for {filename}: {e}")
        cleanup_failed_upload(target)
        return None


def cleanup_failed_upload(absolute_path: Optional[str]) -> None:
    """Remove a stored file after a failed upload/update (best effort)."""
    if not absolute_path:
        return
    try:
        if os.path.exists(absolute_path):
            os.remove(absolute_path)
            logger.info(f"[IMAGES] Removed failed upload {absolute_path}")
    except OSError as e:
        logger.error(f"[IMAGES] Error cleaning up failed upload {absolute_path}: {e}")


def save_uploaded_image(file: Optional[FileStorage], storage: Optional[ImageStorageService] = None) -> Dict:
    """
    Store an uploaded image and its thumbnail.

    Args:
        file: Werkzeug FileStorage object from request.files
        storage: Image storage (defaults to the one bound to the current app)

    Returns:
        Dict with filename, originalName, size, mimetype, relativePath,
        absolutePath, thumbnailPath and uploadedAt

    Raises:
        ImageUploadError: If the file is rejected or is not a readable image
    """
    storage = storage or get_image_storage()
    file_size = _check_upload(file)

    filename = generate_unique_filename(file.filename)
    absolute_path = storage.get_absolute_image_path(filename, ORIGINAL)

    try:
        storage.ensure_directories_exist()
        file.save(absolute_path)
    except OSError as e:
        logger.exception(f"[IMAGES] Failed to store upload {file.filename}: {e}")
        cleanup_failed_upload(absolute_path)
        raise ImageUploadError('Upload failed', f"Could not store image: {e}", status_code=500)

    validation = validate_uploaded_image(absolute_path)
    if not validation['success']:
        cleanup_failed_upload(absolute_path)
        raise ImageUploadError('Image processing failed', ', '.join(validation['errors']))

    thumbnail_path = create_thumbnail(storage, filename)

    product_images_uploaded_total.labels(mimetype=file.mimetype).inc()
    logger.info(f"[IMAGES] Stored upload '{file.filename}' as {filename} ({file_size} bytes)")

    return {
        'filename': filename,
        'originalName': file.filename,
        'size': file_size,
        'mimetype': file.mimetype,
        'relativePath': get_relative_image_path(filename, ORIGINAL),
        'absolutePath': absolute_path,
        'thumbnailPath': get_relative_image_path(filename, THUMBNAIL) if thumbnail_path else None,
        'uploadedAt': datetime.now(timezone.utc).isoformat()
    }


def discard_uploaded_image(image_info: Dict, storage: Optional[ImageStorageService] = None) -> None:
    """Remove both variants of an upload that never got referenced."""
    storage = storage or get_image_storage()
    cleanup_failed_upload(image_info.get('absolutePath'))
    filename = image_info.get('filename')
    if filename:
        cleanup_failed_upload(storage.get_absolute_image_path(filename, THUMBNAIL))


def get_image_info(relative_path: Optional[str], storage: Optional[ImageStorageService] = None) -> Optional[Dict]:
    """
    File details of a stored original image.

    Returns:
        Dict with filename, relativePath, absolutePath, size, modifiedAt, or
        None when the path is invalid or the file is missing
    """
    filename = extract_filename_from_path(relative_path)
    if not filename:
        return None

    storage = storage or get_image_storage()
    absolute_path = storage.get_absolute_image_path(filename, ORIGINAL)
    try:
        stats = os.stat(absolute_path)
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.error(f"[IMAGES] Error getting image info for {relative_path}: {e}")
        return None

    return {
        'filename': filename,
        'relativePath': relative_path,
        'absolutePath': absolute_path,
        'size': stats.st_size,
        'modifiedAt': datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc).isoformat()
    }
