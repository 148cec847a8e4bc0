import json
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import ChatStore
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import DEFAULT_TITLE, ChatSession, SessionMessage


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_dt(raw: str) -> datetime:
    return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))


class JsonChatStore(ChatStore):
    """每个会话一个目录：meta.json 保存元数据，messages.jsonl 逐行保存消息。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._chat_root = self._root / "chats"
        self._chat_root.mkdir(parents=True, exist_ok=True)

    def create_session(self, title: str = DEFAULT_TITLE) -> ChatSession:
        sid = f"c-{uuid4().hex}"
        cdir = self._chat_root / sid
        cdir.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        session = ChatSession(id=sid, title=title, messages=[], created_at=now, last_updated=now)
        self._write_meta(cdir, session)
        return session

    def get_session(self, session_id: str) -> ChatSession:
        session = self._read_meta(session_id)
        session.messages = self._read_messages(session_id)
        return session

    def list_sessions(self) -> List[ChatSession]:
        """返回全部会话（含消息），最新创建的排在最前。"""

        items: List[ChatSession] = []
        for cdir in self._chat_root.glob("*/"):
            if not (cdir / "meta.json").exists():
                continue
            try:
                items.append(self.get_session(cdir.name))
            except BusinessError:
                continue
        items.sort(key=lambda s: s.created_at, reverse=True)
        return items

    def add_message(self, session_id: str, message: SessionMessage) -> None:
        cdir = self._session_dir(session_id)
        msgs_path = cdir / "messages.jsonl"
        try:
            payload = {
                "content": message.content,
                "sender": message.sender,
                "timestamp": _iso(message.timestamp),
            }
            if message.is_error:
                payload["is_error"] = True
            with msgs_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False) + "\n")
            session = self._read_meta(session_id)
            session.last_updated = message.timestamp
            self._write_meta(cdir, session)
        except BusinessError:
            raise
        except (OSError, TypeError, ValueError) as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))

    def update_title(self, session_id: str, title: str) -> None:
        """更新会话标题。"""
        session = self._read_meta(session_id)
        session.title = title
        session.last_updated = datetime.now(timezone.utc)
        self._write_meta(self._session_dir(session_id), session)

    def clear_messages(self, session_id: str) -> None:
        cdir = self._session_dir(session_id)
        msgs_path = cdir / "messages.jsonl"
        try:
            if msgs_path.exists():
                msgs_path.unlink()
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))
        session = self._read_meta(session_id)
        session.last_updated = datetime.now(timezone.utc)
        self._write_meta(cdir, session)

    def delete_session(self, session_id: str) -> None:
        cdir = self._session_dir(session_id)
        try:
            shutil.rmtree(cdir)
        except OSError as e:
            raise BusinessError(code="STORE_DELETE_ERROR", message=str(e))

    def clear_all(self) -> None:
        try:
            shutil.rmtree(self._chat_root)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BusinessError(code="STORE_DELETE_ERROR", message=str(e))
        self._chat_root.mkdir(parents=True, exist_ok=True)

    def _session_dir(self, session_id: str) -> Path:
        cdir = (self._chat_root / session_id).resolve()
        if cdir.parent != self._chat_root or not cdir.is_dir():
            raise BusinessError(code="SESSION_NOT_FOUND", message=session_id, http_status=404)
        return cdir

    def _read_meta(self, session_id: str) -> ChatSession:
        meta_path = self._session_dir(session_id) / "meta.json"
        try:
            data = json.loads(meta_path.read_text(encoding="utf-8"))
            return ChatSession(
                id=data["id"],
                title=data.get("title") or DEFAULT_TITLE,
                messages=[],
                created_at=_parse_dt(data["created_at"]),
                last_updated=_parse_dt(data["last_updated"]),
            )
        except (OSError, KeyError, ValueError) as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e))

    def _read_messages(self, session_id: str) -> List[SessionMessage]:
        msgs_path = self._session_dir(session_id) / "messages.jsonl"
        items: List[SessionMessage] = []
        if not msgs_path.exists():
            return items
        for line in msgs_path.read_text(encoding="utf-8").splitlines():
            try:
                items.append(self._to_message(json.loads(line)))
            except (KeyError, ValueError):
                continue
        return items

    def _write_meta(self, cdir: Path, session: ChatSession) -> None:
        meta_path = cdir / "meta.json"
        tmp_path = cdir / f"meta.{uuid4().hex}.json.tmp"
        obj = {
            "id": session.id,
            "title": session.title,
            "created_at": _iso(session.created_at),
            "last_updated": _iso(session.last_updated),
        }
        try:
            tmp_path.write_text(json.dumps(obj, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, meta_path)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))

    @staticmethod
    def _to_message(data: Dict[str, Any]) -> SessionMessage:
        return SessionMessage(
            content=data.get("content") or "",
            sender=data["sender"],
            timestamp=_parse_dt(data["timestamp"]),
            is_error=bool(data.get("is_error", False)),
        )
