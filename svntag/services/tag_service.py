"""
Tagging service for svntag.

Copies every module a build checked out to its tag location, replacing
any tag already there. Used by the `svntag tag` command.

Each module goes through RESOLVE -> DELETE_OLD -> COPY, one module at a
time, in the order the build context lists them:

- a module with no recorded revision is skipped (unless externals are
  pegged, in which case the working copy is the source);
- failing to delete an old tag is only a warning;
- a template error or a failed copy stops the run. Modules tagged before
  the failure keep their tags.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generator, Optional

from ..config import load_config
from ..domain.module import ModuleLocation
from ..domain.operation import (
    REVISION_NOT_AVAILABLE,
    TagOutcome,
    TagStatus,
    TagSummary,
)
from ..domain.tagging import TagSpec, TemplateContext
from ..exit_codes import (
    AuthUnavailableError,
    CommandError,
    CopyFailedError,
    LedgerUnreadableError,
    SvnError,
    TemplateError,
)
from ..externals import ExternalsPolicy, pin_to_working_revision
from ..infra.svn_client import CopySource, SvnAuth, SvnClient, WorkingCopySource
from ..ledger import RevisionLedger
from ..template import evaluate
from ..urls import InvalidURLError, parent_url, path_segments, resolve_url
from .build_context import TaggableBuildContext

logger = logging.getLogger(__name__)


@dataclass
class _ResolvedModule:
    """Everything needed to tag one module, computed before touching the repository."""
    module: ModuleLocation
    url: str
    revision: Optional[int]
    tag_url: str
    comment: str
    delete_comment: str
    mkdir_comment: Optional[str] = None


@dataclass
class _RunState:
    waited: bool = False


class TagService:
    """
    Service for tagging the modules of a build.

    Example:
        service = TagService()
        spec = TagSpec(tag_url_template="../tags/${env['BUILD_TAG']}")

        for progress in service.tag_modules(context, spec):
            print(progress)

        result = service.last_result
        print(f"Tagged {result.successful} modules")
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        svn_client: Optional[SvnClient] = None,
        externals_policy: ExternalsPolicy = pin_to_working_revision,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize TagService.

        Args:
            config: Configuration dict (loads default if None)
            svn_client: SvnClient instance (created from the build's
                credentials if None)
            externals_policy: Pegging policy used when peg_externals is set
            sleep: Blocking pause used for wait_seconds
        """
        self.config = config if config is not None else load_config()
        self.svn = svn_client
        self.externals_policy = externals_policy
        self.sleep = sleep
        self.last_result: Optional[TagSummary] = None
        self.last_error: Optional[CommandError] = None

    def _client_for(self, auth: Any) -> SvnClient:
        if self.svn is not None:
            return self.svn
        return SvnClient.from_config(self.config, auth if isinstance(auth, SvnAuth) else SvnAuth())

    def perform(self, context: TaggableBuildContext, spec: TagSpec) -> bool:
        """Tag all modules, logging progress. Returns True on success."""
        for progress in self.tag_modules(context, spec):
            logger.info(progress)
        return self.last_result.success

    def tag_modules(
        self,
        context: TaggableBuildContext,
        spec: TagSpec,
    ) -> Generator[str, None, TagSummary]:
        """
        Tag every module of a build.

        Args:
            context: The build being tagged
            spec: Templates and flags

        Yields:
            Progress messages

        Returns:
            TagSummary with one outcome per processed module
        """
        result = TagSummary(dry_run=spec.dry_run)
        self.last_result = result
        self.last_error = None

        if not context.build_succeeded():
            yield "Build was not successful; nothing to tag"
            return result

        try:
            ledger = context.revision_ledger()
        except LedgerUnreadableError as e:
            self.last_error = e
            logger.error(str(e))
            result.fail(str(e))
            yield f"✗ {e}"
            return result

        auth = context.auth_provider()
        if auth is None:
            error = AuthUnavailableError()
            self.last_error = error
            logger.error(str(error))
            result.fail(str(error))
            yield f"✗ {error}"
            return result

        locations = context.module_locations()
        if not locations:
            yield "No module locations to tag"
            return result

        client = self._client_for(auth)
        base_context = TemplateContext(
            environment=context.environment(),
            system_properties=context.system_properties(),
        )
        state = _RunState()

        yield f"Tagging {len(locations)} module(s)"
        for index, module in enumerate(locations):
            outcome = yield from self._tag_module(client, module, ledger, base_context, spec, state)
            result.add_outcome(outcome)

            if outcome.status == TagStatus.FAILED:
                remaining = len(locations) - index - 1
                if remaining:
                    yield f"Aborting; {remaining} module(s) not tagged"
                break

        return result

    def _resolve(
        self,
        module: ModuleLocation,
        url: str,
        revision: Optional[int],
        base_context: TemplateContext,
        spec: TagSpec,
    ) -> _ResolvedModule:
        """
        Evaluate every template for a module.

        Raises:
            TemplateError: if a template cannot be evaluated
            InvalidURLError: if the tag URL is not usable
        """
        template_context = base_context.for_segments(path_segments(url))

        tag_location = evaluate(spec.tag_url_template, template_context)
        if not tag_location:
            raise InvalidURLError("Tag URL template evaluated to an empty string")
        tag_url = resolve_url(url, tag_location)
        if tag_url == url or url.startswith(tag_url + '/'):
            raise InvalidURLError(f"Tag URL {tag_url} would replace the module itself")

        mkdir_comment = None
        if spec.mkdir_comment_template:
            mkdir_comment = evaluate(spec.mkdir_comment_template, template_context)

        return _ResolvedModule(
            module=module,
            url=url,
            revision=revision,
            tag_url=tag_url,
            comment=evaluate(spec.tag_comment_template, template_context),
            delete_comment=evaluate(spec.delete_comment_template, template_context),
            mkdir_comment=mkdir_comment,
        )

    def _tag_module(
        self,
        client: SvnClient,
        module: ModuleLocation,
        ledger: RevisionLedger,
        base_context: TemplateContext,
        spec: TagSpec,
        state: _RunState,
    ) -> Generator[str, None, TagOutcome]:
        """Run one module through RESOLVE -> DELETE_OLD -> COPY."""
        # RESOLVE
        try:
            url = module.canonical_url
        except InvalidURLError as e:
            self.last_error = CommandError(f"Invalid repository URL {module.repository_url}: {e}")
            yield f"  ✗ {module.repository_url}: invalid repository URL ({e})"
            return TagOutcome(module=module, status=TagStatus.FAILED,
                              error=f"Invalid repository URL: {e}")

        revision = ledger.get(url)
        if revision is None and not spec.peg_externals:
            logger.warning(f"Revision not available for {url}; skipping")
            yield f"  - {url}: revision not available, skipped"
            return TagOutcome(module=module, status=TagStatus.SKIPPED,
                              reason=REVISION_NOT_AVAILABLE)

        if spec.peg_externals:
            yield f"Module {url} (working copy {module.local_path})"
        else:
            yield f"Module {url}@{revision}"

        try:
            resolved = self._resolve(module, url, revision, base_context, spec)
        except TemplateError as e:
            self.last_error = e
            yield f"  ✗ {url}: {e}"
            return TagOutcome(module=module, status=TagStatus.FAILED,
                              revision=revision, error=str(e))
        except InvalidURLError as e:
            self.last_error = CommandError(f"Invalid tag URL for {url}: {e}")
            yield f"  ✗ {url}: invalid tag URL ({e})"
            return TagOutcome(module=module, status=TagStatus.FAILED,
                              revision=revision, error=f"Invalid tag URL: {e}")

        yield f"  Tag URL: {resolved.tag_url}"

        if spec.dry_run:
            yield f"  Would delete {resolved.tag_url}"
            source = module.local_path if spec.peg_externals else f"{url}@{revision}"
            yield f"  Would copy {source} to {resolved.tag_url}"
            return TagOutcome(module=module, status=TagStatus.DRY_RUN,
                              revision=revision, tag_url=resolved.tag_url)

        warnings = []

        # DELETE_OLD
        warning = self._delete_old_tag(client, resolved)
        if warning:
            warnings.append(warning)
            yield f"  {warning}"
        else:
            yield f"  Deleted old tag {resolved.tag_url}"

        if spec.wait_seconds and not state.waited:
            state.waited = True
            yield f"Waiting {spec.wait_seconds:g}s before tagging"
            self.sleep(spec.wait_seconds)

        make_parents = True
        if resolved.mkdir_comment is not None:
            make_parents = False
            warning = self._make_parent(client, resolved)
            if warning:
                warnings.append(warning)
                yield f"  {warning}"

        # COPY
        try:
            new_revision = self._copy(client, resolved, spec, make_parents)
        except CopyFailedError as e:
            self.last_error = e
            logger.error(str(e))
            yield f"  ✗ {e}"
            return TagOutcome(module=module, status=TagStatus.FAILED, revision=revision,
                              tag_url=resolved.tag_url, error=str(e), warnings=warnings)

        if new_revision is None:
            yield f"  ✓ Tagged {resolved.tag_url}"
        else:
            yield f"  ✓ Tagged {resolved.tag_url} in revision {new_revision}"
        return TagOutcome(module=module, status=TagStatus.SUCCESS, revision=revision,
                          new_revision=new_revision, tag_url=resolved.tag_url,
                          warnings=warnings)

    def _delete_old_tag(self, client: SvnClient, resolved: _ResolvedModule) -> Optional[str]:
        """Delete whatever is at the tag URL. Returns a warning on failure."""
        logger.debug(f"Deleting old tag {resolved.tag_url}")
        try:
            info = client.delete([resolved.tag_url], resolved.delete_comment)
        except SvnError as e:
            logger.info(f"No old tag deleted at {resolved.tag_url}: {e}")
            return f"No old tag deleted at {resolved.tag_url}: {e}"

        if info.error_message:
            logger.info(f"Deleting {resolved.tag_url} reported: {info.error_message}")
            return f"Deleting old tag reported: {info.error_message}"
        return None

    def _make_parent(self, client: SvnClient, resolved: _ResolvedModule) -> Optional[str]:
        """Create the tag's parent directory. Returns a warning on failure."""
        parent = parent_url(resolved.tag_url)
        logger.debug(f"Creating tag parent {parent}")
        try:
            client.import_empty_dir(parent, resolved.mkdir_comment)
        except SvnError as e:
            return f"Could not create {parent}: {e}"
        return None

    def _copy(
        self,
        client: SvnClient,
        resolved: _ResolvedModule,
        spec: TagSpec,
        make_parents: bool,
    ) -> Optional[int]:
        """
        Copy the module to its tag URL.

        Returns:
            The committed revision, if svn reported one

        Raises:
            CopyFailedError: if the copy did not commit
        """
        if spec.peg_externals:
            copy_client = client.with_externals_policy(self.externals_policy)
            source = WorkingCopySource(resolved.module.local_path)
        else:
            copy_client = client
            source = [CopySource(resolved.url, resolved.revision, resolved.revision)]

        logger.debug(f"Copying {resolved.url} to {resolved.tag_url}")
        try:
            info = copy_client.copy(
                source,
                resolved.tag_url,
                make_parents=make_parents,
                fail_if_exists=False,
                message=resolved.comment,
            )
        except SvnError as e:
            raise CopyFailedError(f"Failed to tag {resolved.url}: {e}") from e

        if info.error_message:
            raise CopyFailedError(f"Failed to tag {resolved.url}: {info.error_message}")
        return info.new_revision
