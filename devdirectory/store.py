"""JSON-document persistence for users and developer profiles."""
from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
import threading
import uuid
from contextlib import suppress
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .errors import Conflict, Internal, NotFound, StoreCorruptedError, ValidationError
from .models import Developer, DeveloperDraft, DeveloperPatch, Role, User, UserDraft

logger = logging.getLogger("devdirectory.store")

SEED_DEVELOPERS: Tuple[Dict[str, Any], ...] = (
    {"name": "Aman Roy", "role": "Full-Stack", "techStack": ["React", "Node.js", "MongoDB"], "experience": 3},
    {"name": "Priya Singh", "role": "Frontend", "techStack": ["React", "Tailwind"], "experience": 2},
    {"name": "Vikram Patel", "role": "Backend", "techStack": ["Node.js", "Express", "SQLite"], "experience": 4},
    {"name": "Sarah Chen", "role": "Frontend", "techStack": ["Vue.js", "Sass", "Firebase"], "experience": 5},
    {"name": "David Kim", "role": "Backend", "techStack": ["Python", "Django", "PostgreSQL"], "experience": 3},
    {"name": "Emma Wilson", "role": "Full-Stack", "techStack": ["Next.js", "Prisma", "AWS"], "experience": 4},
    {"name": "James Lee", "role": "Frontend", "techStack": ["React", "Redux", "Material UI"], "experience": 2},
    {"name": "Maria Garcia", "role": "Backend", "techStack": ["Java", "Spring Boot", "MySQL"], "experience": 6},
    {"name": "Robert Taylor", "role": "Full-Stack", "techStack": ["Angular", ".NET Core", "Azure"], "experience": 7},
    {"name": "Lisa Wong", "role": "Frontend", "techStack": ["Svelte", "Tailwind", "Vercel"], "experience": 1},
    {"name": "Michael Brown", "role": "Backend", "techStack": ["Go", "Docker", "Kubernetes"], "experience": 4},
)

_DEVELOPER_FIELDS = ("name", "role", "tech_stack", "experience", "about", "joining_date")
_REQUIRED_FIELDS = ("name", "role", "tech_stack", "experience")
_WIRE_NAMES = {
    "name": "name",
    "role": "role",
    "tech_stack": "techStack",
    "experience": "experience",
    "about": "about",
    "joining_date": "joiningDate",
}


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_data_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the developer document."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "developers.json").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _field_error(field_name: str, message: str) -> ValidationError:
    return ValidationError(message, details=[{"field": field_name, "message": message}])


def validate_developer_fields(values: Mapping[str, Any], *, partial: bool) -> Dict[str, Any]:
    """Check developer fields and return them in their stored form.

    ``partial`` allows any subset of fields; otherwise the required fields must
    all be present. Raises :class:`ValidationError` listing every bad field.
    """

    problems: List[Dict[str, str]] = []
    cleaned: Dict[str, Any] = {}

    def reject(name: str, message: str) -> None:
        problems.append({"field": _WIRE_NAMES.get(name, name), "message": message})

    unknown = set(values) - set(_DEVELOPER_FIELDS)
    for name in sorted(unknown):
        reject(name, "Unknown field")

    if not partial:
        for name in _REQUIRED_FIELDS:
            if values.get(name) is None:
                reject(name, "Field is required")

    if "name" in values and values["name"] is not None:
        raw = values["name"]
        if not isinstance(raw, str) or len(raw.strip()) < 2:
            reject("name", "Name is required and must be at least 2 characters.")
        else:
            cleaned["name"] = raw.strip()
    elif partial and "name" in values:
        reject("name", "Name cannot be cleared")

    if "role" in values and values["role"] is not None:
        raw = values["role"]
        try:
            cleaned["role"] = raw if isinstance(raw, Role) else Role(raw)
        except ValueError:
            reject("role", f"Role must be one of: {', '.join(Role.values())}")
    elif partial and "role" in values:
        reject("role", "Role cannot be cleared")

    if "tech_stack" in values and values["tech_stack"] is not None:
        raw = values["tech_stack"]
        if isinstance(raw, str) or not isinstance(raw, (list, tuple)) or not raw:
            reject("tech_stack", "Tech Stack must be a non-empty array.")
        elif not all(isinstance(item, str) and item.strip() for item in raw):
            reject("tech_stack", "Tech Stack entries must be non-empty strings.")
        else:
            cleaned["tech_stack"] = tuple(item.strip() for item in raw)
    elif partial and "tech_stack" in values:
        reject("tech_stack", "Tech Stack cannot be cleared")

    if "experience" in values and values["experience"] is not None:
        raw = values["experience"]
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            reject("experience", "Experience must be a non-negative integer.")
        else:
            cleaned["experience"] = raw
    elif partial and "experience" in values:
        reject("experience", "Experience cannot be cleared")

    if "about" in values:
        raw = values["about"]
        if raw is not None and not isinstance(raw, str):
            reject("about", "About must be text.")
        else:
            cleaned["about"] = raw

    if "joining_date" in values:
        raw = values["joining_date"]
        if raw is None or isinstance(raw, date) and not isinstance(raw, datetime):
            cleaned["joining_date"] = raw
        elif isinstance(raw, str):
            try:
                cleaned["joining_date"] = date.fromisoformat(raw)
            except ValueError:
                reject("joining_date", "Joining date must be an ISO calendar date.")
        else:
            reject("joining_date", "Joining date must be an ISO calendar date.")

    if problems:
        raise ValidationError(problems[0]["message"], details=problems)
    return cleaned


@dataclass(frozen=True)
class _UserRecord:
    user: User
    password_hash: str


@dataclass(frozen=True)
class _Snapshot:
    users: Mapping[str, _UserRecord]
    developers: Mapping[str, Developer]
    issued_ids: FrozenSet[str]


class DeveloperStore:
    """Owns every user and developer record and rewrites the document on change.

    Mutations are serialised by a lock and committed with write-then-rename;
    the new state is published only after the document is on disk. Readers take
    the currently published snapshot without locking.
    """

    def __init__(
        self,
        path: Path,
        *,
        admin_name: str = "Administrator",
        admin_email: str = "admin@devdirectory.local",
        admin_password_hash: Optional[str] = None,
    ) -> None:
        _ensure_directory(path)
        self._path = path
        self._admin_name = admin_name
        self._admin_email = admin_email
        self._admin_password_hash = admin_password_hash
        self._lock = threading.Lock()
        self._state = _Snapshot(users={}, developers={}, issued_ids=frozenset())
        self._last_timestamp: Optional[datetime] = None

    @property
    def path(self) -> Path:
        return self._path

    def initialize(self) -> None:
        """Load the existing document, or seed and persist a fresh one."""

        with self._lock:
            if self._path.exists():
                self._state = self._read_document()
                logger.info(
                    "Loaded %d developer(s) and %d user(s) from %s",
                    len(self._state.developers),
                    len(self._state.users),
                    self._path,
                )
                return

            seeded = self._seed_snapshot()
            self._write_document(seeded)
            self._state = seeded
            logger.info("Seeded developer store at %s", self._path)

    # ------------------------------------------------------------------
    # Developers
    # ------------------------------------------------------------------
    def list_developers(self) -> Tuple[Developer, ...]:
        return tuple(self._state.developers.values())

    def get_developer(self, developer_id: str) -> Developer:
        developer = self._state.developers.get(developer_id)
        if developer is None:
            raise NotFound(f"Developer {developer_id} not found.")
        return developer

    def insert_developer(self, draft: DeveloperDraft) -> Developer:
        fields = validate_developer_fields(
            {name: getattr(draft, name) for name in _DEVELOPER_FIELDS},
            partial=False,
        )
        with self._lock:
            state = self._state
            now = self._next_timestamp()
            developer = Developer(
                id=self._new_id(state),
                created_by=draft.created_by,
                created_at=now,
                updated_at=now,
                **fields,
            )
            developers = dict(state.developers)
            developers[developer.id] = developer
            self._commit(
                _Snapshot(
                    users=state.users,
                    developers=developers,
                    issued_ids=state.issued_ids | {developer.id},
                )
            )
        logger.info("Created developer %s (%s)", developer.id, developer.name)
        return developer

    def replace_developer(self, developer_id: str, patch: DeveloperPatch) -> Developer:
        fields = validate_developer_fields(patch.values, partial=True)
        with self._lock:
            state = self._state
            existing = state.developers.get(developer_id)
            if existing is None:
                raise NotFound(f"Developer {developer_id} not found.")
            updated = dataclasses.replace(existing, updated_at=self._next_timestamp(), **fields)
            developers = dict(state.developers)
            developers[developer_id] = updated
            self._commit(_Snapshot(users=state.users, developers=developers, issued_ids=state.issued_ids))
        logger.info("Updated developer %s (fields: %s)", developer_id, ", ".join(sorted(fields)) or "none")
        return updated

    def delete_developer(self, developer_id: str) -> None:
        with self._lock:
            state = self._state
            if developer_id not in state.developers:
                raise NotFound(f"Developer {developer_id} not found.")
            developers = {key: value for key, value in state.developers.items() if key != developer_id}
            self._commit(_Snapshot(users=state.users, developers=developers, issued_ids=state.issued_ids))
        logger.info("Deleted developer %s", developer_id)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        return [record.user for record in self._state.users.values()]

    def get_user(self, user_id: str) -> Optional[User]:
        record = self._state.users.get(user_id)
        return record.user if record is not None else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        record = self._find_user_record(self._state, email)
        return record.user if record is not None else None

    def get_password_hash(self, email: str) -> Optional[Tuple[User, str]]:
        """Return the user and stored hash for ``email``; used by the auth gate only."""

        record = self._find_user_record(self._state, email)
        if record is None:
            return None
        return record.user, record.password_hash

    def insert_user(self, draft: UserDraft) -> User:
        name = draft.name.strip()
        email = normalize_email(draft.email)
        if len(name) < 2:
            raise _field_error("name", "Name must be at least 2 characters.")
        if "@" not in email:
            raise _field_error("email", "A valid email address is required.")
        if not draft.password_hash:
            raise ValidationError("Password hash must not be empty")

        with self._lock:
            state = self._state
            if self._find_user_record(state, email) is not None:
                raise Conflict("A user with that email already exists")
            user = User(id=self._new_id(state), name=name, email=email, created_at=self._next_timestamp())
            users = dict(state.users)
            users[user.id] = _UserRecord(user=user, password_hash=draft.password_hash)
            self._commit(
                _Snapshot(
                    users=users,
                    developers=state.developers,
                    issued_ids=state.issued_ids | {user.id},
                )
            )
        logger.info("Created user %s <%s>", user.id, user.email)
        return user

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _find_user_record(state: _Snapshot, email: str) -> Optional[_UserRecord]:
        wanted = normalize_email(email)
        for record in state.users.values():
            if record.user.email == wanted:
                return record
        return None

    @staticmethod
    def _new_id(state: _Snapshot) -> str:
        while True:
            candidate = str(uuid.uuid4())
            if candidate not in state.issued_ids:
                return candidate

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so "newest" ordering follows insertion order.
        now = _current_timestamp()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _commit(self, snapshot: _Snapshot) -> None:
        self._write_document(snapshot)
        self._state = snapshot

    def _seed_snapshot(self) -> _Snapshot:
        if not self._admin_password_hash:
            raise Internal("Cannot seed the developer store without an administrator password hash")

        empty = _Snapshot(users={}, developers={}, issued_ids=frozenset())
        admin = User(
            id=self._new_id(empty),
            name=self._admin_name,
            email=normalize_email(self._admin_email),
            created_at=self._next_timestamp(),
        )
        issued = {admin.id}
        developers: Dict[str, Developer] = {}
        for entry in SEED_DEVELOPERS:
            fields = validate_developer_fields(
                {
                    "name": entry["name"],
                    "role": entry["role"],
                    "tech_stack": entry["techStack"],
                    "experience": entry["experience"],
                },
                partial=False,
            )
            now = self._next_timestamp()
            state = _Snapshot(users={}, developers=developers, issued_ids=frozenset(issued))
            developer = Developer(id=self._new_id(state), created_by=admin.id, created_at=now, updated_at=now, **fields)
            developers[developer.id] = developer
            issued.add(developer.id)

        return _Snapshot(
            users={admin.id: _UserRecord(user=admin, password_hash=self._admin_password_hash)},
            developers=developers,
            issued_ids=frozenset(issued),
        )

    def _read_document(self) -> _Snapshot:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (ValueError, UnicodeDecodeError) as exc:
            raise StoreCorruptedError(f"Developer store at {self._path} is not valid JSON") from exc
        except OSError as exc:
            raise Internal(f"Developer store at {self._path} could not be read") from exc

        if not isinstance(raw, dict):
            raise StoreCorruptedError(f"Developer store at {self._path} must contain a JSON object")

        try:
            users: Dict[str, _UserRecord] = {}
            for item in raw["users"]:
                user = User(
                    id=str(item["id"]),
                    name=str(item["name"]),
                    email=normalize_email(str(item["email"])),
                    created_at=datetime.fromisoformat(item["createdAt"]),
                )
                users[user.id] = _UserRecord(user=user, password_hash=str(item["passwordHash"]))
            developers: Dict[str, Developer] = {}
            for item in raw["developers"]:
                developer = Developer.from_dict(item)
                developers[developer.id] = developer
            issued = set(raw.get("retiredIds", []))
            stamps = [developer.updated_at for developer in developers.values()]
            stamps.extend(record.user.created_at for record in users.values())
            latest = max(stamps) if stamps else None
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreCorruptedError(f"Developer store at {self._path} has an unexpected structure") from exc

        issued.update(users)
        issued.update(developers)
        if latest is not None:
            self._last_timestamp = latest
        return _Snapshot(users=users, developers=developers, issued_ids=frozenset(issued))

    def _serialize(self, snapshot: _Snapshot) -> str:
        live = set(snapshot.users) | set(snapshot.developers)
        document = {
            "users": [
                {**record.user.to_dict(), "passwordHash": record.password_hash}
                for record in snapshot.users.values()
            ],
            "developers": [developer.to_dict() for developer in snapshot.developers.values()],
            "retiredIds": sorted(snapshot.issued_ids - live),
        }
        return json.dumps(document, indent=2)

    def _write_document(self, snapshot: _Snapshot) -> None:
        payload = self._serialize(snapshot)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except OSError as exc:
            with suppress(FileNotFoundError):
                os.unlink(tmp_name)
            logger.error("Failed to persist developer store to %s: %s", self._path, exc)
            raise Internal("Failed to persist developer store") from exc


__all__ = ["DeveloperStore", "SEED_DEVELOPERS", "normalize_email", "resolve_data_path", "validate_developer_fields"]
