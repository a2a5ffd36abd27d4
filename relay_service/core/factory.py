from importlib import import_module
from typing import Any, Dict, Optional, cast
import inspect

from relay_service.core.config import get_section, load_settings
from relay_service.core.interfaces import AgentConnector, AuthFlow, SessionStore
from relay_service.protocol.reconciler import StreamReconciler
from relay_service.protocol.rendering import REPLY_PREFIX
from relay_service.protocol.router import ConversationRouter
from relay_service.protocol.service.relay_service import RelayService


def load(dotted: str, **kwargs: Any) -> Any:
    """Import a dotted path and instantiate the class if callable.
    Filters kwargs to match the constructor signature (unless **kwargs is accepted)."""
    module, cls = dotted.rsplit(".", 1)
    mod = import_module(module)
    obj = getattr(mod, cls)

    if isinstance(obj, type):
        sig = inspect.signature(obj.__init__)
        params = list(sig.parameters.values())
        accepts_kwargs = any(p.kind == p.VAR_KEYWORD for p in params)
        if accepts_kwargs:
            return obj(**kwargs)
        # Filter only accepted params (skip 'self')
        allowed = {p.name for p in params if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY) and p.name != "self"}
        filtered = {k: v for k, v in kwargs.items() if k in allowed}
        return obj(**filtered)

    return obj


class ServiceFactory:
    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else load_settings()
        self._connector: AgentConnector | None = None
        self._store: SessionStore | None = None
        self._auth_flow: AuthFlow | None = None

    def _provider(self, name: str) -> Dict[str, Any]:
        return get_section(self.config, "providers", name)

    @property
    def agent_url(self) -> str:
        return get_section(self.config, "agent").get("url", "http://localhost:4000/.well-known/agent-card.json")

    @property
    def prefix(self) -> str:
        return get_section(self.config, "display").get("prefix", REPLY_PREFIX)

    def get_connector(self) -> AgentConnector:
        if not self._connector:
            cfg = self._provider("connector")
            self._connector = cast(AgentConnector, load(cfg.get("impl", ""), **(cfg.get("args") or {})))
        return self._connector

    def get_store(self) -> SessionStore:
        if not self._store:
            cfg = self._provider("session_store")
            self._store = cast(SessionStore, load(cfg.get("impl", ""), **(cfg.get("args") or {})))
        return self._store

    def get_auth_flow(self) -> AuthFlow:
        if not self._auth_flow:
            cfg = self._provider("auth_flow")
            args = dict(cfg.get("args") or {})
            args.setdefault("agent_url", self.agent_url)
            self._auth_flow = cast(
                AuthFlow, load(cfg.get("impl", ""), connector=self.get_connector(), **args)
            )
        return self._auth_flow

    def get_router(self) -> ConversationRouter:
        streaming = get_section(self.config, "streaming")
        update_interval = int(streaming.get("update_interval", 5))
        typing_interval = float(streaming.get("typing_interval", 2.0))
        prefix = self.prefix

        def reconciler_factory(surface):
            return StreamReconciler(
                surface,
                update_interval=update_interval,
                typing_interval=typing_interval,
                prefix=prefix,
            )

        return ConversationRouter(self.get_auth_flow(), reconciler_factory=reconciler_factory, prefix=prefix)

    def get_relay_service(self) -> RelayService:
        return RelayService(
            connector=self.get_connector(),
            session_store=self.get_store(),
            router=self.get_router(),
        )
