"""
Privileged package installation — package re-exports.

Layers, innermost first::

    data           static catalog + remediation text
    domain         pure rendering / validation / help lookup
    detection      PATH probes (manager selection)
    execution      session, readiness, authentication, tracer
    orchestration  install use case + background worker

    from src.core.services.pkg_install import InstallOrchestrator
"""

# ── L0: Data ──
from src.core.services.pkg_install.data.catalog import PACKAGE_MANAGERS  # noqa: F401

# ── L1: Domain ──
from src.core.services.pkg_install.domain.remediation import help_for  # noqa: F401
from src.core.services.pkg_install.domain.rendering import (  # noqa: F401
    render_install,
    render_uninstall,
    validate_packages,
)

# ── Errors ──
from src.core.services.pkg_install.errors import (  # noqa: F401
    InstallError,
    InstallIOError,
    InvalidPackageError,
    NotSupportedError,
    PermissionDeniedError,
    ProcessFailedError,
)

# ── L3: Detection ──
from src.core.services.pkg_install.detection.package_manager import (  # noqa: F401
    PackageManagerCatalog,
)

# ── L4: Execution ──
from src.core.services.pkg_install.execution.authentication import (  # noqa: F401
    AuthenticationProtocol,
    AuthState,
    authenticate,
)
from src.core.services.pkg_install.execution.readiness import (  # noqa: F401
    SelectorMultiplexer,
    StreamMultiplexer,
    ThreadedMultiplexer,
    create_multiplexer,
)
from src.core.services.pkg_install.execution.session import (  # noqa: F401
    ElevationRequest,
    PrivilegedShellSession,
    is_privileged,
)
from src.core.services.pkg_install.execution.tracer import (  # noqa: F401
    ProcessTracer,
    trace_process,
)

# ── L5: Orchestration ──
from src.core.services.pkg_install.orchestration.orchestrator import (  # noqa: F401
    InstallOrchestrator,
)
from src.core.services.pkg_install.orchestration.worker import (  # noqa: F401
    InstallWorker,
    WorkerMessage,
    outcome_from_error,
)
