"""
Local filesystem storage for product images.

Every product image exists as up to two files sharing one generated filename:

    <images_root>/images/products/uploads/<filename>      (original)
    <images_root>/images/products/thumbnails/<filename>   (thumbnail)

Products persist only the web path of the original
('/images/products/uploads/<filename>'); the thumbnail location and the
on-disk locations are always derived from it.

The public operations never raise for expected conditions (missing files,
foreign paths coming from product records). They return result dicts whose
keys match the JSON returned by the admin API; unexpected OS errors are
logged and folded into the same 'errors' lists.
"""
import logging
import os
import posixpath
import re
import secrets
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from flask import Flask, current_app

from shopsmart.metrics import (
    product_image_cleanup_failures_total,
    product_image_files_deleted_total,
)

logger = logging.getLogger(__name__)

ORIGINAL = 'original'
THUMBNAIL = 'thumbnail'
VARIANTS = (ORIGINAL, THUMBNAIL)

PRODUCT_IMAGES_PREFIX = '/images/products/'
UPLOADS_PREFIX = PRODUCT_IMAGES_PREFIX + 'uploads/'
THUMBNAILS_PREFIX = PRODUCT_IMAGES_PREFIX + 'thumbnails/'

MAX_STEM_LENGTH = 40

_UNSAFE_CHARS = re.compile(r'[^a-z0-9.]')
_REPEATED_DASHES = re.compile(r'-+')


@dataclass(frozen=True)
class StoredImage:
    """One physical rendition of a product image."""

    filename: str
    variant: str
    relative_path: str
    absolute_path: str

    @property
    def exists(self) -> bool:
        return os.path.isfile(self.absolute_path)


def generate_unique_filename(original_name: str) -> str:
    """
    Build a collision-resistant filename for an uploaded image.

    Format: {ms-timestamp}-{16 hex chars}-{sanitized stem}{ext}
    e.g. 'Test Product Image.JPG' -> '1718000000000-9f0c...-test-product-image.jpg'
    """
    timestamp = int(time.time() * 1000)
    random_hash = secrets.token_hex(8)

    sanitized = _UNSAFE_CHARS.sub('-', (original_name or '').lower())
    sanitized = _REPEATED_DASHES.sub('-', sanitized)

    stem, ext = os.path.splitext(sanitized)
    return f"{timestamp}-{random_hash}-{stem[:MAX_STEM_LENGTH]}{ext}"


def get_relative_image_path(filename: str, variant: str = ORIGINAL) -> str:
    """Web path stored on product records (and served by Flask)."""
    if variant == THUMBNAIL:
        return f"{THUMBNAILS_PREFIX}{filename}"
    return f"{UPLOADS_PREFIX}{filename}"


def extract_filename_from_path(relative_path: Optional[str]) -> Optional[str]:
    """
    Return the filename of a stored image path.

    None is returned for empty paths and for anything outside
    /images/products/, so values read from product records can never
    point the storage at arbitrary files.
    """
    if not relative_path or not isinstance(relative_path, str):
        return None
    if not relative_path.startswith(PRODUCT_IMAGES_PREFIX):
        return None

    filename = posixpath.basename(relative_path)
    if filename in ('', '.', '..') or '\\' in filename:
        return None
    return filename


class ImageStorageService:
    """
    Filesystem-backed product image storage.

    Usage:
        storage = ImageStorageService('/srv/shop/public')
        storage.ensure_directories_exist()
        result = storage.replace_product_image(product.image, new_path)
    """

    def __init__(self, images_root: str):
        self.images_root = os.path.abspath(images_root)
        self.base_dir = os.path.join(self.images_root, 'images', 'products')
        self.uploads_dir = os.path.join(self.base_dir, 'uploads')
        self.thumbnails_dir = os.path.join(self.base_dir, 'thumbnails')

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def ensure_directories_exist(self) -> None:
        """Create base, uploads and thumbnails directories (idempotent)."""
        for directory in (self.base_dir, self.uploads_dir, self.thumbnails_dir):
            os.makedirs(directory, exist_ok=True)

    def get_absolute_image_path(self, filename: str, variant: str = ORIGINAL) -> str:
        if variant == THUMBNAIL:
            return os.path.join(self.thumbnails_dir, filename)
        return os.path.join(self.uploads_dir, filename)

    def resolve(self, filename: str, variant: str = ORIGINAL) -> StoredImage:
        return StoredImage(
            filename=filename,
            variant=variant,
            relative_path=get_relative_image_path(filename, variant),
            absolute_path=self.get_absolute_image_path(filename, variant)
        )

    # Module-level helpers exposed on the service for callers holding only the instance
    generate_unique_filename = staticmethod(generate_unique_filename)
    get_relative_image_path = staticmethod(get_relative_image_path)
    extract_filename_from_path = staticmethod(extract_filename_from_path)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_product_image(self, relative_path: Optional[str]) -> Dict:
        """
        Delete the original and thumbnail files behind a stored image path.

        Missing files are not errors, so deleting twice succeeds twice.
        A failure on one variant does not stop the other.

        Returns:
            {'success': bool, 'deletedFiles': [absolute paths], 'errors': [str]}
        """
        result = {'success': True, 'deletedFiles': [], 'errors': []}

        if not relative_path:
            return result

        filename = extract_filename_from_path(relative_path)
        if not filename:
            logger.warning(f"[IMAGES] Refusing to delete invalid image path: {relative_path!r}")
            product_image_cleanup_failures_total.labels(operation='delete').inc()
            result['success'] = False
            result['errors'].append(f"Invalid image path provided: {relative_path}")
            return result

        for variant in VARIANTS:
            absolute_path = self.get_absolute_image_path(filename, variant)
            try:
                if os.path.exists(absolute_path):
                    os.remove(absolute_path)
                    result['deletedFiles'].append(absolute_path)
                    product_image_files_deleted_total.labels(variant=variant).inc()
                    logger.info(f"[IMAGES] Deleted {variant} image: {absolute_path}")
            except FileNotFoundError:
                # Removed concurrently between the check and the unlink
                continue
            except OSError as e:
                logger.error(f"[IMAGES] Failed to delete {variant} image {absolute_path}: {e}")
                product_image_cleanup_failures_total.labels(operation='delete').inc()
                result['errors'].append(f"Failed to delete {variant} image {absolute_path}: {e}")

        result['success'] = not result['errors']
        return result

    def delete_multiple_product_images(self, relative_paths: Optional[Iterable[Optional[str]]]) -> Dict:
        """
        Delete several images, one independent delete per path.

        Returns:
            {'success', 'totalDeleted', 'totalErrors', 'results': [per-path result]}
        """
        results = []
        for relative_path in relative_paths or []:
            outcome = self.delete_product_image(relative_path)
            results.append({'path': relative_path, **outcome})

        total_deleted = sum(len(r['deletedFiles']) for r in results)
        total_errors = sum(len(r['errors']) for r in results)

        if results:
            logger.info(
                f"[IMAGES] Bulk delete: {len(results)} paths, "
                f"{total_deleted} files deleted, {total_errors} errors"
            )

        return {
            'success': all(r['success'] for r in results),
            'totalDeleted': total_deleted,
            'totalErrors': total_errors,
            'results': results
        }

    # ------------------------------------------------------------------
    # Validation / replacement
    # ------------------------------------------------------------------

    def validate_image_exists(self, relative_path: Optional[str]) -> Dict:
        """
        Pre-flight check before a product record is pointed at an image.

        Returns:
            {'exists', 'filename', 'absolutePath'} plus 'error' when not usable.
        """
        if not relative_path:
            return {
                'exists': False,
                'filename': None,
                'absolutePath': None,
                'error': 'No image path provided'
            }

        filename = extract_filename_from_path(relative_path)
        if not filename:
            return {
                'exists': False,
                'filename': None,
                'absolutePath': None,
                'error': 'Invalid image path format'
            }

        absolute_path = self.get_absolute_image_path(filename)
        try:
            exists = os.path.isfile(absolute_path)
        except OSError as e:
            logger.error(f"[IMAGES] Could not stat {absolute_path}: {e}")
            return {
                'exists': False,
                'filename': filename,
                'absolutePath': absolute_path,
                'error': f"Error checking image file: {e}"
            }

        result = {'exists': exists, 'filename': filename, 'absolutePath': absolute_path}
        if not exists:
            result['error'] = 'Image file does not exist'
        return result

    def replace_product_image(self, old_path: Optional[str], new_path: Optional[str]) -> Dict:
        """
        Validate a new image and clean up the one it replaces.

        Only problems with the new image make the replacement fail: the caller
        must not store a pointer to a file that is not there. Problems while
        deleting the old image leave an orphaned file behind; they are
        reported in 'errors' and 'oldImageCleanup' but keep success=True.

        Returns:
            {'success', 'newImagePath', 'oldImageCleanup': {'attempted',
             'success', 'deletedFiles', 'errors'}, 'errors'}
        """
        result = {
            'success': False,
            'newImagePath': None,
            'oldImageCleanup': {
                'attempted': False,
                'success': False,
                'deletedFiles': [],
                'errors': []
            },
            'errors': []
        }

        if not new_path:
            result['errors'].append('New image path is required')
            return result

        if not extract_filename_from_path(new_path):
            result['errors'].append('Invalid new image path provided')
            return result

        validation = self.validate_image_exists(new_path)
        if not validation['exists']:
            if validation.get('error') == 'Image file does not exist':
                result['errors'].append('New image file does not exist')
            else:
                result['errors'].append(validation.get('error', 'New image file does not exist'))
            return result

        result['success'] = True
        result['newImagePath'] = new_path

        if not old_path or old_path == new_path:
            return result

        cleanup = result['oldImageCleanup']
        cleanup['attempted'] = True
        deletion = self.delete_product_image(old_path)
        cleanup['success'] = deletion['success']
        cleanup['deletedFiles'] = deletion['deletedFiles']
        cleanup['errors'] = deletion['errors']

        if deletion['errors']:
            logger.warning(
                f"[IMAGES] Replaced {old_path} with {new_path} but cleanup failed: {deletion['errors']}"
            )
            product_image_cleanup_failures_total.labels(operation='replace').inc()
            result['errors'].extend(deletion['errors'])
        else:
            logger.info(f"[IMAGES] Replaced {old_path} with {new_path}")

        return result

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def list_stored_filenames(self) -> List[str]:
        """Filenames present in uploads/ or thumbnails/ (sorted, unique)."""
        names = set()
        for directory in (self.uploads_dir, self.thumbnails_dir):
            if not os.path.isdir(directory):
                continue
            for entry in os.scandir(directory):
                if entry.is_file():
                    names.add(entry.name)
        return sorted(names)

    def find_orphaned_images(self, referenced_paths: Iterable[Optional[str]]) -> List[str]:
        """Relative paths of stored images that no product references."""
        referenced = {
            extract_filename_from_path(path) for path in referenced_paths
        }
        referenced.discard(None)
        return [
            get_relative_image_path(name)
            for name in self.list_stored_filenames()
            if name not in referenced
        ]

    def cleanup_orphaned_images(self, referenced_paths: Iterable[Optional[str]], dry_run: bool = False) -> Dict:
        """Delete every stored image not referenced by a product."""
        orphans = self.find_orphaned_images(referenced_paths)
        if dry_run:
            return {
                'success': True,
                'orphans': orphans,
                'totalDeleted': 0,
                'totalErrors': 0,
                'results': []
            }
        outcome = self.delete_multiple_product_images(orphans)
        outcome['orphans'] = orphans
        return outcome


def init_image_storage(app: Flask) -> ImageStorageService:
    """Create the image storage for an app and make sure its directories exist."""
    storage = ImageStorageService(app.config['IMAGES_ROOT'])
    try:
        storage.ensure_directories_exist()
        logger.info(f"[IMAGES] Storage ready at {storage.base_dir}")
    except OSError as e:
        logger.error(f"[IMAGES] Error initializing image directories: {e}")
        raise
    app.extensions['image_storage'] = storage
    return storage


def get_image_storage() -> ImageStorageService:
    """Get the image storage bound to the current app."""
    storage = current_app.extensions.get('image_storage')
    if storage is None:
        raise RuntimeError("Image storage not initialized.")
    return storage
