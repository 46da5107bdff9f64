"""
Tests for TagService.

Tests cover:
- Tagging at the recorded revision (relative and absolute tag URLs)
- Skipping modules without a recorded revision
- Non-fatal delete failures
- Aborting on copy failures and template errors
- Dry runs, pegged externals, waiting and legacy parent creation
- Failures detected before any repository access
"""

import pytest
from unittest.mock import MagicMock, patch

from svntag.domain import ModuleLocation, TagSpec, TagStatus, REVISION_NOT_AVAILABLE
from svntag.domain.tagging import DEFAULT_DELETE_COMMENT
from svntag.exit_codes import (
    AuthUnavailableError,
    CommandError,
    CopyFailedError,
    LedgerUnreadableError,
    SvnError,
    TemplateError,
)
from svntag.externals import pin_to_working_revision
from svntag.infra.svn_client import CommitInfo, CopySource, SvnAuth, SvnClient, WorkingCopySource
from svntag.ledger import RevisionLedger
from svntag.services.tag_service import TagService


class FakeBuildContext:
    """In-memory build context."""

    def __init__(self, locations, revisions=None, environment=None, properties=None,
                 auth=None, succeeded=True, ledger_error=None):
        self.locations = list(locations)
        self.revisions = revisions or {}
        self.env = environment if environment is not None else {"BUILD_TAG": "build-5", "EMPTY": ""}
        self.properties = properties or {"user.name": "builder"}
        self.auth = auth if auth is not None else SvnAuth()
        self.succeeded = succeeded
        self.ledger_error = ledger_error

    def module_locations(self):
        return self.locations

    def revision_ledger(self):
        if self.ledger_error:
            raise self.ledger_error
        return RevisionLedger(self.revisions)

    def environment(self):
        return self.env

    def system_properties(self):
        return self.properties

    def build_succeeded(self):
        return self.succeeded

    def auth_provider(self):
        return self.auth


TRUNK = "http://host/repo/trunk"
LIB = "http://host/repo/lib"
TOOLS = "http://host/repo/tools"


@pytest.fixture
def mock_svn_client():
    """Create a mock svn client that commits every operation."""
    client = MagicMock(spec=SvnClient)
    client.delete.return_value = CommitInfo(new_revision=6)
    client.copy.return_value = CommitInfo(new_revision=7)
    client.import_empty_dir.return_value = CommitInfo(new_revision=8)
    return client


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def service(mock_svn_client, sleep):
    return TagService(config={}, svn_client=mock_svn_client, sleep=sleep)


def run(service, context, spec):
    messages = list(service.tag_modules(context, spec))
    return messages, service.last_result


class TestTagModules:
    """Tests for the delete-then-copy sequence."""

    def test_relative_tag_url(self, service, mock_svn_client):
        """Module trunk at revision 5 is tagged at ../tags/trunk."""
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        spec = TagSpec(tag_url_template="../tags/${repoURL[-1]}")

        messages, result = run(service, context, spec)

        mock_svn_client.delete.assert_called_once_with(
            ["http://host/repo/tags/trunk"], DEFAULT_DELETE_COMMENT
        )
        mock_svn_client.copy.assert_called_once_with(
            [CopySource(TRUNK, 5, 5)],
            "http://host/repo/tags/trunk",
            make_parents=True,
            fail_if_exists=False,
            message="Tagged by svntag",
        )
        assert result.success is True
        assert result.successful == 1
        detail = result.details[0]
        assert detail.status == TagStatus.SUCCESS
        assert detail.revision == 5
        assert detail.new_revision == 7
        assert detail.tag_url == "http://host/repo/tags/trunk"
        assert any("Tagged http://host/repo/tags/trunk in revision 7" in m for m in messages)

    def test_absolute_tag_url_and_comments(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK + "/")], {TRUNK: 5})
        spec = TagSpec(
            tag_url_template="http://host/repo/tags/${env['BUILD_TAG']}",
            tag_comment_template="Tag ${env['BUILD_TAG']} of ${repoURL[-1]}",
            delete_comment_template="Replace ${env['BUILD_TAG']}",
        )

        _, result = run(service, context, spec)

        mock_svn_client.delete.assert_called_once_with(
            ["http://host/repo/tags/build-5"], "Replace build-5"
        )
        _, kwargs = mock_svn_client.copy.call_args
        assert kwargs['message'] == "Tag build-5 of trunk"
        assert result.success is True

    def test_ledger_lookup_uses_canonical_url(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation("HTTP://HOST/repo/trunk/")], {TRUNK: 9})
        spec = TagSpec(tag_url_template="../tags/t")

        _, result = run(service, context, spec)

        args, _ = mock_svn_client.copy.call_args
        assert args[0] == [CopySource(TRUNK, 9, 9)]
        assert result.details[0].revision == 9

    def test_missing_revision_is_skipped(self, service, mock_svn_client):
        """A module the ledger does not list is skipped; the run still succeeds."""
        context = FakeBuildContext([ModuleLocation(TRUNK), ModuleLocation(LIB)], {TRUNK: 5})
        spec = TagSpec(tag_url_template="../tags/${repoURL[-1]}")

        messages, result = run(service, context, spec)

        assert result.success is True
        assert result.successful == 1
        assert result.skipped == 1
        skipped = result.details[1]
        assert skipped.status == TagStatus.SKIPPED
        assert skipped.reason == REVISION_NOT_AVAILABLE
        assert mock_svn_client.copy.call_count == 1
        assert f"  - {LIB}: revision not available, skipped" in messages

    def test_fragment_in_tag_name_is_escaped(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5},
                                   environment={"BUILD_TAG": "build#5"})
        spec = TagSpec(tag_url_template="../tags/${env['BUILD_TAG']}")

        _, result = run(service, context, spec)

        tag_url = "http://host/repo/tags/build%235"
        mock_svn_client.delete.assert_called_once_with([tag_url], DEFAULT_DELETE_COMMENT)
        assert mock_svn_client.copy.call_args[0][1] == tag_url
        assert result.details[0].tag_url == tag_url

    def test_query_in_tag_url_never_deletes_parent(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        spec = TagSpec(tag_url_template="../tags?${env['BUILD_TAG']}")

        _, result = run(service, context, spec)

        mock_svn_client.delete.assert_called_once_with(
            ["http://host/repo/tags%3Fbuild-5"], DEFAULT_DELETE_COMMENT
        )
        assert result.success is True

    def test_delete_failure_is_not_fatal(self, service, mock_svn_client):
        """Deleting a tag that does not exist fails, but the copy still happens."""
        mock_svn_client.delete.side_effect = SvnError("svn: E160013: path not found", returncode=1)
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        spec = TagSpec(tag_url_template="../tags/trunk")

        _, result = run(service, context, spec)

        mock_svn_client.copy.assert_called_once()
        assert result.success is True
        detail = result.details[0]
        assert detail.status == TagStatus.SUCCESS
        assert len(detail.warnings) == 1
        assert "path not found" in detail.warnings[0]

    def test_copy_failure_aborts_remaining_modules(self, service, mock_svn_client):
        """Module 1 keeps its tag, module 2 fails, module 3 is never attempted."""
        mock_svn_client.copy.side_effect = [
            CommitInfo(new_revision=7),
            SvnError("svn: E175002: connection refused"),
            CommitInfo(new_revision=9),
        ]
        context = FakeBuildContext(
            [ModuleLocation(TRUNK), ModuleLocation(LIB), ModuleLocation(TOOLS)],
            {TRUNK: 5, LIB: 6, TOOLS: 7},
        )
        spec = TagSpec(tag_url_template="../tags/${repoURL[-1]}")

        messages, result = run(service, context, spec)

        assert result.success is False
        assert result.successful == 1
        assert result.failed == 1
        assert result.total == 2
        assert mock_svn_client.copy.call_count == 2
        assert mock_svn_client.delete.call_count == 2
        assert result.details[0].status == TagStatus.SUCCESS
        assert result.details[1].status == TagStatus.FAILED
        assert "connection refused" in result.errors[0]
        assert "Aborting; 1 module(s) not tagged" in messages
        assert isinstance(service.last_error, CopyFailedError)

    def test_copy_reporting_error_message_fails(self, service, mock_svn_client):
        mock_svn_client.copy.return_value = CommitInfo(error_message="post-commit hook failed")
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})

        _, result = run(service, context, TagSpec(tag_url_template="../tags/trunk"))

        assert result.success is False
        assert "post-commit hook failed" in result.details[0].error

    def test_copy_without_reported_revision(self, service, mock_svn_client):
        mock_svn_client.copy.return_value = CommitInfo()
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})

        messages, result = run(service, context, TagSpec(tag_url_template="../tags/trunk"))

        assert result.success is True
        assert result.details[0].new_revision is None
        assert "  ✓ Tagged http://host/repo/tags/trunk" in messages


class TestTemplateFailures:
    """Template and URL problems stop the run before the repository is touched."""

    def test_undefined_variable_aborts(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK), ModuleLocation(LIB)], {TRUNK: 5, LIB: 6})
        spec = TagSpec(tag_url_template="../tags/${env['MISSING']}")

        _, result = run(service, context, spec)

        assert result.success is False
        assert result.total == 1
        assert result.details[0].status == TagStatus.FAILED
        mock_svn_client.delete.assert_not_called()
        mock_svn_client.copy.assert_not_called()
        assert isinstance(service.last_error, TemplateError)

    def test_bad_comment_template_aborts_before_delete(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        spec = TagSpec(tag_url_template="../tags/trunk", tag_comment_template="${sys['nope']}")

        _, result = run(service, context, spec)

        assert result.success is False
        mock_svn_client.delete.assert_not_called()

    def test_empty_tag_url_fails(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})

        _, result = run(service, context, TagSpec(tag_url_template="${env['EMPTY']}"))

        assert result.success is False
        mock_svn_client.delete.assert_not_called()

    @pytest.mark.parametrize("template", [".", "..", TRUNK + "/"])
    def test_tag_url_may_not_replace_module(self, service, mock_svn_client, template):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})

        _, result = run(service, context, TagSpec(tag_url_template=template))

        assert result.success is False
        mock_svn_client.delete.assert_not_called()
        assert isinstance(service.last_error, CommandError)

    def test_invalid_module_url_fails(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation("trunk")], {})

        _, result = run(service, context, TagSpec(tag_url_template="../tags/x"))

        assert result.success is False
        assert "Invalid repository URL" in result.details[0].error
        mock_svn_client.copy.assert_not_called()


class TestDryRun:
    """Tests for dry runs."""

    def test_dry_run_does_not_touch_repository(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK), ModuleLocation(LIB)], {TRUNK: 5})
        spec = TagSpec(tag_url_template="../tags/${repoURL[-1]}", dry_run=True)

        messages, result = run(service, context, spec)

        mock_svn_client.delete.assert_not_called()
        mock_svn_client.copy.assert_not_called()
        assert result.dry_run is True
        assert result.details[0].status == TagStatus.DRY_RUN
        assert result.details[0].tag_url == "http://host/repo/tags/trunk"
        assert result.details[1].status == TagStatus.SKIPPED
        assert f"  Would copy {TRUNK}@5 to http://host/repo/tags/trunk" in messages


class TestPeggedExternals:
    """Tests for copying working copies with pegged externals."""

    @pytest.fixture
    def pegged_client(self, mock_svn_client):
        pegged = MagicMock(spec=SvnClient)
        pegged.copy.return_value = CommitInfo(new_revision=11)
        mock_svn_client.with_externals_policy.return_value = pegged
        return pegged

    def test_copies_working_copy_with_policy(self, service, mock_svn_client, pegged_client):
        context = FakeBuildContext([ModuleLocation(TRUNK, "/ws/trunk")], {TRUNK: 5})
        spec = TagSpec(tag_url_template="../tags/trunk", peg_externals=True)

        _, result = run(service, context, spec)

        mock_svn_client.with_externals_policy.assert_called_once_with(pin_to_working_revision)
        pegged_client.copy.assert_called_once_with(
            WorkingCopySource("/ws/trunk"),
            "http://host/repo/tags/trunk",
            make_parents=True,
            fail_if_exists=False,
            message="Tagged by svntag",
        )
        mock_svn_client.copy.assert_not_called()
        mock_svn_client.delete.assert_called_once()
        assert result.details[0].new_revision == 11

    def test_custom_policy(self, mock_svn_client, pegged_client, sleep):
        def keep_declared(path, declared, working):
            return declared, declared

        service = TagService(config={}, svn_client=mock_svn_client,
                             externals_policy=keep_declared, sleep=sleep)
        context = FakeBuildContext([ModuleLocation(TRUNK, "/ws/trunk")], {TRUNK: 5})

        run(service, context, TagSpec(tag_url_template="../tags/trunk", peg_externals=True))

        mock_svn_client.with_externals_policy.assert_called_once_with(keep_declared)

    def test_missing_revision_still_tagged(self, service, pegged_client):
        context = FakeBuildContext([ModuleLocation(TRUNK, "/ws/trunk")], {})
        spec = TagSpec(tag_url_template="../tags/trunk", peg_externals=True)

        _, result = run(service, context, spec)

        assert result.successful == 1
        assert result.skipped == 0
        pegged_client.copy.assert_called_once()


class TestWaitAndMkdir:
    """Tests for the pause before tagging and legacy parent creation."""

    def test_waits_once_per_run(self, service, sleep):
        context = FakeBuildContext([ModuleLocation(TRUNK), ModuleLocation(LIB)], {TRUNK: 5, LIB: 6})
        spec = TagSpec(tag_url_template="../tags/${repoURL[-1]}", wait_seconds=3)

        _, result = run(service, context, spec)

        assert result.successful == 2
        sleep.assert_called_once_with(3)

    def test_wait_happens_before_first_copy(self, service, mock_svn_client, sleep):
        order = []
        mock_svn_client.delete.side_effect = lambda *a, **k: order.append('delete') or CommitInfo()
        mock_svn_client.copy.side_effect = lambda *a, **k: order.append('copy') or CommitInfo(new_revision=7)
        sleep.side_effect = lambda seconds: order.append('wait')
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})

        run(service, context, TagSpec(tag_url_template="../tags/trunk", wait_seconds=1))

        assert order == ['delete', 'wait', 'copy']

    def test_no_wait_by_default(self, service, sleep):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        run(service, context, TagSpec(tag_url_template="../tags/trunk"))
        sleep.assert_not_called()

    def test_mkdir_comment_imports_parent(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        spec = TagSpec(
            tag_url_template="../tags/${env['BUILD_TAG']}/trunk",
            mkdir_comment_template="Create tags for ${env['BUILD_TAG']}",
        )

        _, result = run(service, context, spec)

        mock_svn_client.import_empty_dir.assert_called_once_with(
            "http://host/repo/tags/build-5", "Create tags for build-5"
        )
        _, kwargs = mock_svn_client.copy.call_args
        assert kwargs['make_parents'] is False
        assert result.success is True

    def test_mkdir_failure_is_a_warning(self, service, mock_svn_client):
        mock_svn_client.import_empty_dir.side_effect = SvnError("already exists")
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        spec = TagSpec(tag_url_template="../tags/b/trunk", mkdir_comment_template="mkdir")

        _, result = run(service, context, spec)

        assert result.success is True
        assert any("already exists" in w for w in result.details[0].warnings)


class TestPreconditions:
    """Failures detected before any module is processed."""

    def test_build_not_successful(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5}, succeeded=False)

        messages, result = run(service, context, TagSpec(tag_url_template="../tags/t"))

        assert messages == ["Build was not successful; nothing to tag"]
        assert result.success is True
        assert result.total == 0
        mock_svn_client.copy.assert_not_called()

    def test_ledger_unreadable(self, service, mock_svn_client):
        context = FakeBuildContext(
            [ModuleLocation(TRUNK)],
            ledger_error=LedgerUnreadableError("Failed to read revision ledger revision.txt"),
        )

        _, result = run(service, context, TagSpec(tag_url_template="../tags/t"))

        assert result.success is False
        assert "revision.txt" in result.fatal_error
        assert isinstance(service.last_error, LedgerUnreadableError)
        mock_svn_client.delete.assert_not_called()
        mock_svn_client.copy.assert_not_called()

    def test_auth_unavailable(self, service, mock_svn_client):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        context.auth = None

        _, result = run(service, context, TagSpec(tag_url_template="../tags/t"))

        assert result.success is False
        assert result.fatal_error == "No Subversion authentication provider available"
        assert isinstance(service.last_error, AuthUnavailableError)
        mock_svn_client.delete.assert_not_called()

    def test_no_locations(self, service):
        messages, result = run(service, FakeBuildContext([]), TagSpec(tag_url_template="../tags/t"))

        assert messages == ["No module locations to tag"]
        assert result.success is True


class TestServiceSetup:
    """Tests for client creation and the logging entry point."""

    def test_client_built_from_config_and_auth(self, sleep):
        config = {'svn': {'executable': '/usr/bin/svn'}}
        auth = SvnAuth(username="builder")
        service = TagService(config=config, sleep=sleep)
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5}, auth=auth)

        with patch('svntag.services.tag_service.SvnClient') as client_class:
            client_class.from_config.return_value.delete.return_value = CommitInfo()
            client_class.from_config.return_value.copy.return_value = CommitInfo(new_revision=7)
            run(service, context, TagSpec(tag_url_template="../tags/t"))

        client_class.from_config.assert_called_once_with(config, auth)

    def test_perform_returns_success(self, service):
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        assert service.perform(context, TagSpec(tag_url_template="../tags/t")) is True

    def test_perform_returns_failure(self, service, mock_svn_client):
        mock_svn_client.copy.side_effect = SvnError("denied")
        context = FakeBuildContext([ModuleLocation(TRUNK)], {TRUNK: 5})
        assert service.perform(context, TagSpec(tag_url_template="../tags/t")) is False
