"""Concrete bootstrap phases and the wiring that builds their context."""
from __future__ import annotations

import platform
import tempfile
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from .catalog import BackendKind, CatalogItem
from .config import AppConfig
from .errors import (
    ConfigEditFailed,
    HomebrewError,
    InstallomatorError,
    ItemInstallFailed,
    PrerequisiteMissing,
    TartError,
)
from .executor import ActionExecutor, FailurePolicy, Finalizer, SkipItem
from .inventory import InventoryReader, InventorySnapshot
from .jobs import JOB_INSTALLOMATOR_LABELS, JOB_PAM_LINE, run_job
from .mutators import EditOutcome, append_line_if_absent, link_file
from .phases import PhaseContext, PhaseDefinition, PhaseOutcome, PhaseStatus, batch_outcome
from .preferences import PreferencesWriter
from .privilege import ConsoleUser, ElevatedJob, PrivilegeEscalator
from .providers import (
    DockProvider,
    HomebrewProvider,
    InstallomatorProvider,
    MasProvider,
    ShellFrameworkProvider,
    TartProvider,
)
from .providers.dock import AsUser
from .reconcile import plan
from .reporting import Reporter


@dataclass(slots=True)
class Providers:
    """Tool providers used by the phases."""

    homebrew: HomebrewProvider
    mas: MasProvider
    installomator: InstallomatorProvider
    dock: DockProvider
    preferences: PreferencesWriter
    shell: ShellFrameworkProvider
    tart: TartProvider


def build_providers(config: AppConfig, *, dry_run: bool = False) -> Providers:
    """Instantiate every provider from configuration."""
    return Providers(
        homebrew=HomebrewProvider(
            brew_bin=config.homebrew.brew_bin,
            search_paths=config.homebrew.search_paths,
            install_url=config.homebrew.install_url,
            dry_run=dry_run,
        ),
        mas=MasProvider(mas_bin=config.mas.mas_bin, dry_run=dry_run),
        installomator=InstallomatorProvider(
            path=config.installomator.path,
            releases_url=config.installomator.releases_url,
            download_url=config.installomator.download_url,
            installer_bin=config.installomator.installer_bin,
            flags=config.installomator.flags,
            dry_run=dry_run,
        ),
        dock=DockProvider(dockutil_bin=config.dock.dockutil_bin, dry_run=dry_run),
        preferences=PreferencesWriter(
            restart_processes=config.preferences.restart,
            dry_run=dry_run,
        ),
        shell=ShellFrameworkProvider(
            install_dir=config.shell.install_dir,
            install_url=config.shell.install_url,
            dry_run=dry_run,
        ),
        tart=TartProvider(
            url=config.tart.url,
            install_dirs=config.tart.install_dirs,
            dry_run=dry_run,
        ),
    )


def build_phase_context(
    config: AppConfig,
    *,
    reporter: Reporter,
    escalator: PrivilegeEscalator | None = None,
    providers: Providers | None = None,
    dry_run: bool = False,
) -> PhaseContext:
    """Assemble a :class:`PhaseContext` for a run."""
    providers = providers or build_providers(config, dry_run=dry_run)
    return PhaseContext(
        config=config,
        catalogs=config.catalogs.build(),
        providers=providers,
        escalator=escalator or PrivilegeEscalator(),
        inventory=InventoryReader(homebrew=providers.homebrew, store=providers.mas),
        reporter=reporter,
        dry_run=dry_run,
    )


def _dispatch_job(ctx: PhaseContext, job: ElevatedJob) -> int:
    """Run *job* as root, or in-process for a dry run (dry handlers only read)."""
    if ctx.dry_run:
        return run_job(job, reporter=ctx.reporter)
    return ctx.escalator.run_elevated(job, reporter=ctx.reporter)


def _ok(phase: str, message: str, warnings: list[str] | None = None) -> PhaseOutcome:
    status = PhaseStatus.WARNING if warnings else PhaseStatus.OK
    return PhaseOutcome(phase=phase, status=status, message=message, warnings=tuple(warnings or ()))


def preferences_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Write the configured ``defaults`` and restart Dock/Finder/SystemUIServer."""
    settings = ctx.config.preferences.settings
    if not settings:
        return _ok("preferences", "No preferences configured.")
    ctx.reporter.info("Configuring System Preferences…")
    report = ctx.providers.preferences.apply(settings)
    return batch_outcome("preferences", report, success_message="System preferences applied.")


def homebrew_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Install Homebrew or bring it up to date, then expose it on PATH."""
    brew = ctx.providers.homebrew
    warnings: list[str] = []
    if not brew.is_installed():
        ctx.reporter.info("Homebrew not found → installing…")
        brew.install_homebrew()
        brew.ensure_on_path()
        if not ctx.dry_run and not brew.is_installed():
            raise PrerequisiteMissing("Homebrew install finished but brew was not found.")
    else:
        ctx.reporter.info("Homebrew found → updating & upgrading…")
        brew.update()
        for name, step in (("brew upgrade", brew.upgrade), ("brew cleanup", brew.cleanup)):
            try:
                step()
            except HomebrewError as exc:
                warnings.append(f"{name} failed: {exc}")

    if platform.machine() == "arm64":
        brew.ensure_on_path()
        outcome = append_line_if_absent(
            ctx.config.homebrew.shellenv_profile,
            brew.shellenv_line(),
            needle=str(brew.prefix_bin.parent),
            dry_run=ctx.dry_run,
        )
        if outcome is EditOutcome.INSERTED:
            ctx.reporter.info(f"Added Homebrew shellenv to {ctx.config.homebrew.shellenv_profile}")
    return _ok("homebrew", "Homebrew ready.", warnings)


def packages_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Install missing formulae and casks, then upgrade and clean up."""
    catalog = ctx.catalogs.packages
    if not len(catalog):
        return _ok("packages", "Package catalog empty → nothing to install.")
    brew = ctx.providers.homebrew
    ctx.reporter.info("Installing Homebrew apps…")
    snapshots = [
        ctx.inventory.snapshot(BackendKind.FORMULA),
        ctx.inventory.snapshot(BackendKind.CASK),
    ]
    executor = ActionExecutor(
        brew.install,
        policy=FailurePolicy.BEST_EFFORT,
        progress=ctx.reporter.progress,
        finalizers=(
            Finalizer("brew upgrade", brew.upgrade),
            Finalizer("brew cleanup", brew.cleanup),
        ),
    )
    report = executor.execute(plan(catalog, snapshots))
    return batch_outcome(
        "packages",
        report,
        success_message="Homebrew installs complete.",
        extra_warnings=[warning for snapshot in snapshots for warning in snapshot.warnings],
    )


def app_store_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Install missing Mac App Store apps by numeric ID."""
    catalog = ctx.catalogs.app_store
    if not len(catalog):
        return _ok("app-store", "App Store catalog empty → nothing to install.")
    mas = ctx.providers.mas
    ctx.reporter.info("Installing Mac App Store apps…")
    if not mas.is_available():
        ctx.reporter.info("mas not found → installing via Homebrew…")
        try:
            ctx.providers.homebrew.install(CatalogItem(name="mas", kind=BackendKind.FORMULA))
        except (HomebrewError, ItemInstallFailed) as exc:
            raise PrerequisiteMissing(f"mas is required for App Store installs: {exc}") from exc

    snapshot = ctx.inventory.snapshot(BackendKind.STORE)
    executor = ActionExecutor(
        mas.install,
        policy=FailurePolicy.BEST_EFFORT,
        progress=ctx.reporter.progress,
        finalizers=(Finalizer("mas upgrade", mas.upgrade),),
    )
    report = executor.execute(plan(catalog, snapshot))
    return batch_outcome(
        "app-store",
        report,
        success_message="App Store installs complete.",
        extra_warnings=list(snapshot.warnings),
    )


def installomator_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Install or upgrade Installomator from its latest signed release pkg."""
    provider = ctx.providers.installomator
    if provider.is_installed():
        ctx.reporter.info("Installomator found → upgrading to latest…")
    else:
        ctx.reporter.info("Installomator not found → installing latest…")
    release = provider.resolve_latest()
    ctx.reporter.info(f"Latest Installomator pkg → {release.pkg_url}")
    with tempfile.TemporaryDirectory(prefix="macstrap-installomator-") as workdir:
        pkg = provider.download(release, Path(workdir))
        provider.install_pkg(pkg, elevate=ctx.escalator.elevated_command)
    if not ctx.dry_run and not provider.is_installed():
        raise InstallomatorError(
            f"Install completed, but Installomator was not found at {provider.path}."
        )
    return _ok("installomator", f"Installomator {release.version} ready.")


def installomator_labels_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Run every deployment label through Installomator as root, fail-fast."""
    catalog = ctx.catalogs.labels
    if not len(catalog):
        return _ok(
            "installomator-labels", "No deployment labels configured → nothing to install."
        )
    provider = ctx.providers.installomator
    if not ctx.dry_run and not provider.is_installed():
        raise PrerequisiteMissing(f"Installomator not found at {provider.path}.")
    if not ctx.dry_run and not ctx.escalator.is_elevated():
        ctx.reporter.info("Re-running Installomator installs as root…")
    job = ElevatedJob(
        kind=JOB_INSTALLOMATOR_LABELS,
        params={
            "installomator": str(provider.path),
            "labels": [item.name for item in catalog],
            "flags": list(provider.flags),
        },
        dry_run=ctx.dry_run,
    )
    rc = _dispatch_job(ctx, job)
    if rc != 0:
        raise InstallomatorError(f"Installomator label run failed (exit {rc}).")
    return _ok("installomator-labels", f"{len(catalog)} deployment label(s) processed.")


def tart_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Install or update the tart binary from the latest release."""
    if not ctx.config.tart.enabled:
        return PhaseOutcome(phase="tart", status=PhaseStatus.SKIPPED, message="tart disabled.")
    tart = ctx.providers.tart
    if tart.locate():
        ctx.reporter.info("tart found → updating to latest…")
    else:
        ctx.reporter.info("tart not found → installing latest…")
    with tempfile.TemporaryDirectory(prefix="macstrap-tart-") as workdir:
        binary = tart.fetch(Path(workdir))
        ctx.reporter.info(f"Installing tart → {tart.install_dir() / tart.binary_name}")
        target = tart.install(binary, elevate=ctx.escalator.elevated_command)
    if not ctx.dry_run and tart.locate() is None:
        raise TartError("tart install finished but tart is not on PATH.")
    return _ok("tart", f"tart installed → {tart.locate() or target}")


def dock_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Rebuild the console user's Dock from the dock catalog."""
    dock = ctx.providers.dock
    if dock.locate() is None and not ctx.dry_run:
        raise PrerequisiteMissing("dockutil not found in PATH.")
    user = ctx.escalator.resolve_console_user()
    catalog = ctx.catalogs.dock
    if not len(catalog):
        return _ok("dock", "Dock catalog empty → skipping Dock setup.")

    as_user = partial(ctx.escalator.as_console_user, user)
    ctx.reporter.info(f"Configuring Dock for user: {user.name}")
    ctx.reporter.info("Clearing Dock…")
    dock.clear(user.home, as_user=as_user)

    def add_item(item: CatalogItem) -> None:
        if not Path(item.name).exists():
            raise SkipItem(f"missing app (skipped): {item.name}")
        dock.add(item.name, user.home, as_user=as_user)

    finalizers = []
    if ctx.config.dock.downloads_stack:
        finalizers.append(
            Finalizer("Downloads stack", partial(_add_downloads, dock, user, as_user))
        )
    finalizers.append(Finalizer("restart Dock", partial(dock.restart, as_user=as_user)))
    executor = ActionExecutor(
        add_item,
        policy=FailurePolicy.BEST_EFFORT,
        progress=ctx.reporter.progress,
        finalizers=finalizers,
    )
    report = executor.execute(plan(catalog, InventorySnapshot(kind=BackendKind.DOCK)))
    return batch_outcome("dock", report, success_message="Dock configured.")


def _add_downloads(dock: DockProvider, user: ConsoleUser, as_user: AsUser) -> None:
    dock.add(user.home / "Downloads", user.home, view="grid", as_user=as_user)


def touchid_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Enable Touch ID for sudo by inserting the PAM line as root."""
    pam = ctx.config.pam
    module_glob = Path(pam.module_glob)
    if not any(module_glob.parent.glob(module_glob.name)):
        return _ok(
            "touchid",
            "Touch ID unchanged.",
            ["Touch ID PAM module not found → skipping Touch ID for sudo."],
        )
    if not ctx.dry_run and not ctx.escalator.is_elevated():
        ctx.reporter.info("Enabling Touch ID for sudo (requires admin)…")
    job = ElevatedJob(
        kind=JOB_PAM_LINE,
        params={"path": str(pam.file), "line": pam.line, "pattern": pam.pattern},
        dry_run=ctx.dry_run,
    )
    rc = _dispatch_job(ctx, job)
    if rc != 0:
        raise ConfigEditFailed(f"Editing {pam.file} failed (exit {rc}).")
    return _ok("touchid", "Touch ID for sudo enabled.")


def shell_phase(ctx: PhaseContext) -> PhaseOutcome:
    """Install or update Oh My Zsh and link the synced ``.zshrc``."""
    shell = ctx.providers.shell
    warnings: list[str] = []
    if not shell.is_installed():
        ctx.reporter.info("Oh My Zsh not found → installing…")
        shell.install()
    else:
        ctx.reporter.info("Oh My Zsh found → updating…")
        try:
            shell.update()
        except PrerequisiteMissing as exc:
            warnings.append(f"{exc} → cannot update Oh My Zsh automatically.")

    source = ctx.config.shell.profile_source
    target = ctx.config.shell.profile_target
    if source.is_file():
        link_file(source, target, dry_run=ctx.dry_run)
        ctx.reporter.success(f"Linked {target.name} → {source}")
    else:
        warnings.append(f"Synced .zshrc not found → skipping symlink ({source})")
    return _ok("shell", "Shell configured.", warnings)


PHASES: tuple[PhaseDefinition, ...] = (
    PhaseDefinition("preferences", "System preferences", preferences_phase),
    PhaseDefinition("homebrew", "Homebrew", homebrew_phase),
    PhaseDefinition("packages", "Homebrew packages", packages_phase, ("homebrew",)),
    PhaseDefinition("app-store", "Mac App Store apps", app_store_phase, ("homebrew",)),
    PhaseDefinition("installomator", "Installomator", installomator_phase),
    PhaseDefinition(
        "installomator-labels",
        "Installomator labels",
        installomator_labels_phase,
        ("installomator",),
    ),
    PhaseDefinition("tart", "tart", tart_phase),
    PhaseDefinition("dock", "Dock layout", dock_phase),
    PhaseDefinition("touchid", "Touch ID for sudo", touchid_phase),
    PhaseDefinition("shell", "Oh My Zsh", shell_phase),
)

PHASE_IDS: tuple[str, ...] = tuple(phase.id for phase in PHASES)


def default_phases() -> list[PhaseDefinition]:
    """Return the bootstrap phases in execution order."""
    return list(PHASES)


__all__ = [
    "PHASES",
    "PHASE_IDS",
    "Providers",
    "app_store_phase",
    "build_phase_context",
    "build_providers",
    "default_phases",
    "dock_phase",
    "homebrew_phase",
    "installomator_labels_phase",
    "installomator_phase",
    "packages_phase",
    "preferences_phase",
    "shell_phase",
    "tart_phase",
    "touchid_phase",
]
