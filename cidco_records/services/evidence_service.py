"""
Evidence Service - scanned images, allotment PDF and map for a plot record

Storage layout (bucket root):
    images/<id>/<anything>.{jpg,jpeg,png,webp}
    pdfs/<id>.pdf   (older uploads: pdfs/<id>.PDF)
    maps/<id>.pdf   (older uploads: maps/<id>.PDF)

Nothing is assumed to exist. Every URL handed out is freshly signed and
expires after SIGNED_URL_EXPIRY seconds.
"""

import asyncio
from typing import List, Optional, Sequence

from cidco_records.core.config import settings
from cidco_records.core.logging_config import logger
from cidco_records.schemas.registry import EvidenceBundle
from cidco_records.services.storage_service import StorageService, STORAGE_ERRORS


IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp"})


def is_image_key(key: str) -> bool:
    name = key.rsplit("/", 1)[-1]
    if "." not in name:
        return False
    return name.rsplit(".", 1)[-1].lower() in IMAGE_EXTENSIONS


def document_keys(folder: str, record_id) -> List[str]:
    """Candidate keys for a single-document slot, tried in order"""
    return [f"{folder}/{record_id}.pdf", f"{folder}/{record_id}.PDF"]


class EvidenceService:
    """Resolves the evidence bundle shown on a record's detail page"""

    def __init__(self, storage: StorageService, expiration: int = settings.SIGNED_URL_EXPIRY):
        self.storage = storage
        self.expiration = expiration

    async def resolve(self, record_id) -> EvidenceBundle:
        images, pdf_url, map_url = await asyncio.gather(
            self.resolve_images(record_id),
            self.sign_first_existing(document_keys("pdfs", record_id)),
            self.sign_first_existing(document_keys("maps", record_id)),
        )
        return EvidenceBundle(
            images=images,
            has_pdf=pdf_url is not None,
            pdf_url=pdf_url,
            has_map=map_url is not None,
            map_url=map_url,
        )

    async def resolve_images(self, record_id) -> List[str]:
        prefix = f"images/{record_id}/"
        try:
            keys = await self.storage.list_keys(prefix)
        except STORAGE_ERRORS as e:
            logger.warning(f"[Evidence] Could not list {prefix}: {e}")
            return []

        image_keys = [key for key in keys if is_image_key(key)]
        if not image_keys:
            return []

        urls = await asyncio.gather(*(self._sign(key) for key in image_keys))
        return [url for url in urls if url]

    async def sign_first_existing(self, keys: Sequence[str]) -> Optional[str]:
        for key in keys:
            try:
                url = await self.storage.sign_url_if_exists(key, self.expiration)
            except STORAGE_ERRORS as e:
                logger.warning(f"[Evidence] Could not sign {key}: {e}")
                url = None
            if url:
                return url
        return None

    async def _sign(self, key: str) -> Optional[str]:
        try:
            return await self.storage.sign_url(key, self.expiration)
        except STORAGE_ERRORS as e:
            logger.warning(f"[Evidence] Could not sign {key}: {e}")
            return None
