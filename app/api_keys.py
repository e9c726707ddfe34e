"""
API Key store backed by SQLAlchemy.

Serves the routing engine (tier queries, per-record outcome updates, master
key lookup) and the key management routes (add, toggle, delete, status).
Keys are stored encrypted and only decrypted when a credential reveals them.
"""

from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.orm import Session
from sqlalchemy import and_, case, or_

from keyrouter.errors import CredentialRevealError
from keyrouter.models import (
    Credential,
    CredentialStatus,
    CredentialUpdate,
    GlobalCredential,
    PersonalCredential,
)

from .crypto import SecretCipher, mask_secret
from .database import APIKey, SystemSetting

logger = logging.getLogger(__name__)

ACTIVE = CredentialStatus.ACTIVE.value
REVOKED = CredentialStatus.REVOKED.value


class APIKeyStore:
    """Persistent credential collection for the key router."""

    def __init__(self, db: Session, cipher: SecretCipher):
        self.db = db
        self.cipher = cipher

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def add_key(self, key: str, name: str = None, owner_id: str = None, is_global: Optional[bool] = None) -> APIKey:
        """Add a new API key to the pool.

        ``owner_id`` makes it a personal key; ``is_global=True`` shares it
        with everyone. With neither, the record is a legacy global key.
        """
        api_key = APIKey(
            key_encrypted=self.cipher.encrypt(key),
            name=name or f"Key {self.get_key_count(owner_id) + 1}",
            owner_id=owner_id,
            is_global=is_global,
            status=ACTIVE,
            is_enabled=True,
            usage_count=0,
        )
        self.db.add(api_key)
        self.db.commit()
        self.db.refresh(api_key)
        logger.info(f"🔑 Added {api_key.scope} key '{api_key.name}' ({mask_secret(key)})")
        return api_key

    def get_key(self, key_id: int) -> Optional[APIKey]:
        return self.db.query(APIKey).filter(APIKey.id == key_id).first()

    def get_key_count(self, owner_id: str = None) -> int:
        query = self.db.query(APIKey)
        if owner_id:
            query = query.filter(APIKey.owner_id == owner_id)
        return query.count()

    def list_keys(self, owner_id: str) -> list[APIKey]:
        """All keys owned by a user, newest first, including revoked ones."""
        return (
            self.db.query(APIKey)
            .filter(APIKey.owner_id == owner_id)
            .order_by(APIKey.created_at.desc(), APIKey.id.desc())
            .all()
        )

    def toggle_key(self, key_id: int, owner_id: str = None) -> Optional[APIKey]:
        """Flip a key's enabled flag. Revoked keys cannot be re-enabled."""
        api_key = self._owned(key_id, owner_id)
        if not api_key:
            return None
        if api_key.status == REVOKED:
            logger.warning(f"⚠️ Refusing to toggle revoked key '{api_key.name}'")
            return api_key
        api_key.is_enabled = not api_key.is_enabled
        self.db.commit()
        self.db.refresh(api_key)
        return api_key

    def delete_key(self, key_id: int, owner_id: str = None) -> bool:
        api_key = self._owned(key_id, owner_id)
        if api_key:
            self.db.delete(api_key)
            self.db.commit()
            return True
        return False

    def masked_key(self, api_key: APIKey) -> str:
        try:
            return mask_secret(self.cipher.decrypt(api_key.key_encrypted))
        except CredentialRevealError:
            return "****"

    def get_status(self) -> dict:
        """Get overall API key pool counts."""
        all_keys = self.db.query(APIKey).all()
        usable = [k for k in all_keys if k.status == ACTIVE and k.is_enabled]
        return {
            "total_keys": len(all_keys),
            "active_keys": len(usable),
            "revoked_keys": len([k for k in all_keys if k.status == REVOKED]),
            "disabled_keys": len([k for k in all_keys if k.status == ACTIVE and not k.is_enabled]),
            "global_keys": len([k for k in usable if k.scope == "global"]),
            "has_available_key": len(usable) > 0,
        }

    def _owned(self, key_id: int, owner_id: Optional[str]) -> Optional[APIKey]:
        query = self.db.query(APIKey).filter(APIKey.id == key_id)
        if owner_id is not None:
            query = query.filter(APIKey.owner_id == owner_id)
        return query.first()

    # ------------------------------------------------------------------
    # Router queries
    # ------------------------------------------------------------------

    def personal_credentials(self, owner_id: str) -> list[Credential]:
        """Active, enabled keys owned by ``owner_id``, least recently used first."""
        rows = self._usable().filter(APIKey.owner_id == owner_id)
        return [self._credential(PersonalCredential, row) for row in self._lru(rows)]

    def global_credentials(self) -> list[Credential]:
        """Active, enabled global keys plus legacy ownerless keys."""
        rows = self._usable().filter(
            or_(
                APIKey.is_global == True,  # noqa: E712
                and_(APIKey.owner_id == None, APIKey.is_global == None),  # noqa: E711
            )
        )
        return [self._credential(GlobalCredential, row) for row in self._lru(rows)]

    def update_credential(self, credential_id: int, update: CredentialUpdate) -> bool:
        """Apply an outcome update to one record in a single UPDATE statement.

        ``usage_count`` is incremented in place so concurrent successes are
        never lost. A success never resurrects a key revoked in the meantime.
        """
        values = {}
        if update.increment_usage:
            values[APIKey.usage_count] = APIKey.usage_count + 1
        if update.status is CredentialStatus.ACTIVE:
            values[APIKey.status] = case((APIKey.status == REVOKED, REVOKED), else_=ACTIVE)
        elif update.status is CredentialStatus.REVOKED:
            values[APIKey.status] = REVOKED
            values[APIKey.revoked_at] = update.last_used_at or datetime.utcnow()
        if update.enabled is not None:
            values[APIKey.is_enabled] = update.enabled
        if update.last_used_at is not None:
            values[APIKey.last_used_at] = update.last_used_at
        if update.last_error is not None:
            values[APIKey.last_error] = update.last_error

        if not values:
            return False

        try:
            updated = (
                self.db.query(APIKey)
                .filter(APIKey.id == credential_id)
                .update(values, synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return updated > 0

    def _usable(self):
        return self.db.query(APIKey).filter(
            APIKey.status == ACTIVE,
            APIKey.is_enabled == True,  # noqa: E712
        )

    def _lru(self, query) -> list[APIKey]:
        try:
            return query.order_by(APIKey.last_used_at.asc().nulls_first(), APIKey.id.asc()).all()
        except Exception:
            # Leave the session usable for the remaining tiers and outcome writes
            self.db.rollback()
            raise

    def _credential(self, cls, row: APIKey) -> Credential:
        token = row.key_encrypted
        cipher = self.cipher
        return cls(
            id=row.id,
            name=row.name or f"Key {row.id}",
            revealer=lambda: cipher.decrypt(token),
            last_used_at=row.last_used_at,
            usage_count=row.usage_count or 0,
        )


class SystemSettingsStore:
    """Singleton system configuration, including the master API key."""

    def __init__(self, db: Session, cipher: SecretCipher):
        self.db = db
        self.cipher = cipher

    def _settings(self, create: bool = False) -> Optional[SystemSetting]:
        settings = self.db.query(SystemSetting).order_by(SystemSetting.id.asc()).first()
        if settings is None and create:
            settings = SystemSetting(is_maintenance_mode=False)
            self.db.add(settings)
            self.db.commit()
            self.db.refresh(settings)
        return settings

    def master_secret(self) -> Optional[str]:
        """Decrypted master key, read fresh on every call."""
        try:
            settings = self._settings()
        except Exception:
            self.db.rollback()
            raise
        if not settings or not settings.global_gemini_key:
            return None
        return self.cipher.decrypt(settings.global_gemini_key)

    def set_master_secret(self, key: Optional[str]) -> SystemSetting:
        """Set or clear (with an empty value) the master key."""
        settings = self._settings(create=True)
        settings.global_gemini_key = self.cipher.encrypt(key) if key else None
        self.db.commit()
        self.db.refresh(settings)
        logger.info(f"🔑 Master key {'updated' if key else 'cleared'}")
        return settings

    def toggle_maintenance(self) -> bool:
        settings = self._settings(create=True)
        settings.is_maintenance_mode = not settings.is_maintenance_mode
        self.db.commit()
        logger.info(f"🛠️ Maintenance mode {'enabled' if settings.is_maintenance_mode else 'disabled'}")
        return settings.is_maintenance_mode

    def is_maintenance_mode(self) -> bool:
        settings = self._settings()
        return bool(settings and settings.is_maintenance_mode)

    def get_settings(self) -> dict:
        """Public view of the settings. Never includes the key itself."""
        settings = self._settings()
        if not settings:
            return {"is_maintenance_mode": False, "has_global_key": False}
        return {
            "is_maintenance_mode": bool(settings.is_maintenance_mode),
            "has_global_key": bool(settings.global_gemini_key),
        }
