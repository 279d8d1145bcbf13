from ..settings import BackendKind, Settings
from .base import CompositionBackend


def make_backend(settings: Settings) -> CompositionBackend:
    # Imported here so that a local-only setup never loads cffi or opens sockets.
    match settings.backend:
        case BackendKind.LOCAL:
            from .local import LocalBackend

            return LocalBackend(settings.dictionary)
        case BackendKind.REMOTE:
            from .remote import RemoteBackend

            return RemoteBackend.connect_tcp(settings.remote_host, settings.remote_port, timeout=settings.backend_timeout)
        case BackendKind.NATIVE:
            from .native import NativeBackend

            if settings.native_library is None:
                raise ValueError("The native backend needs native_library set")
            return NativeBackend(settings.native_library, settings.native_resources)
    raise ValueError(f"Unknown backend {settings.backend!r}")
