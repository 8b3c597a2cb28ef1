"""Tests for version assignment."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from ccver.config.models import BranchesConfig, CCVerConfig
from ccver.core.assign import assign_versions, channel_for_branch, peek_version
from ccver.core.grammar import parse_version, parse_version_format
from ccver.core.version import Version
from ccver.exceptions import MonotonicityViolation, VersionAssignmentError

FORMAT = parse_version_format("CC.CC.CC")


def _versions(history, fmt=FORMAT, config=None, **kwargs):
    graph = history.build(kwargs.pop("head", None))
    return graph, assign_versions(graph, fmt, config, **kwargs)


def _assert_monotonic(graph, versions):
    for idx in versions:
        for parent in graph.parents(idx):
            if parent in versions:
                assert not versions[idx] < versions[parent], (
                    f"{versions[idx]} on {graph[idx].name!r} is below parent {versions[parent]}"
                )


class TestChannelForBranch:
    """Tests for channel_for_branch()."""

    def test_standard_branches(self):
        """Configured branches map to their channels."""
        branches = BranchesConfig()

        assert channel_for_branch("main", branches) is None
        assert channel_for_branch("master", branches) is None
        assert channel_for_branch("staging", branches) == "rc"
        assert channel_for_branch("development", branches) == "beta"
        assert channel_for_branch("next", branches) == "alpha"

    def test_named_branches(self):
        """Other branches become named channels."""
        branches = BranchesConfig()

        assert channel_for_branch("feature/login", branches) == "feature-login"
        assert channel_for_branch("fix_bug#12", branches) == "fix-bug-12"

    def test_unknown_branch(self):
        """Commits without a branch are treated as release commits."""
        assert channel_for_branch(None, BranchesConfig()) is None

    def test_custom_tables(self):
        """Branch tables can be configured."""
        branches = BranchesConfig(release=["trunk"], rc=["pre"])

        assert channel_for_branch("trunk", branches) is None
        assert channel_for_branch("pre", branches) == "rc"
        assert channel_for_branch("main", branches) == "main"


class TestLinearHistory:
    """Tests on a single release branch."""

    def test_conventional_bumps(self, linear_history):
        """initial -> feat -> fix gives 0.0.0, 0.1.0, 0.1.1."""
        graph, versions = _versions(linear_history)

        assert [str(versions[i]) for i in graph] == ["0.0.0", "0.1.0", "0.1.1"]
        assert versions.head_version == Version.of(0, 1, 1)

    def test_root_commit_classified(self, history):
        """A conventional root commit bumps the zero version."""
        history.commit("feat: first feature")
        _, versions = _versions(history)

        assert versions.head_version == Version.of(0, 1, 0)

    def test_breaking(self, linear_history):
        """Breaking changes bump the major number."""
        linear_history.commit("feat!: new api")
        linear_history.commit("fix: after")
        _, versions = _versions(linear_history)

        assert str(versions[3]) == "1.0.0"
        assert str(versions[4]) == "1.0.1"

    def test_text_commit_gets_build_hash(self, linear_history):
        """A non-advancing commit on a release branch is a build of its parent."""
        commit_hash = linear_history.commit("update readme")
        _, versions = _versions(linear_history)

        version = versions.for_commit(commit_hash)
        assert str(version) == f"0.1.2-{commit_hash[:7]}"
        assert version > versions[2]

    def test_calendar_format(self, make_history):
        """Calendar numbers follow the commit times."""
        fmt = parse_version_format("YYYY.MM.CC")
        history = make_history(fmt)
        history.commit("initial commit")
        history.commit("feat: march feature")
        history.commit("fix: march fix")
        history.commit("feat: april feature", timestamp=datetime(2024, 4, 2, tzinfo=UTC))
        graph, versions = _versions(history, fmt)

        assert [str(versions[i]) for i in graph] == ["2024.03.0", "2024.03.1", "2024.03.2", "2024.04.0"]
        _assert_monotonic(graph, versions)


class TestTags:
    """Tests for tagged commits."""

    def test_tag_sets_version(self, history):
        """A tag overrides the derived version and later commits build on it."""
        history.commit("initial commit")
        history.commit("fix: x", tags=("1.0.0",))
        history.commit("fix: y")
        _, versions = _versions(history)

        assert str(versions[1]) == "1.0.0"
        assert str(versions[2]) == "1.0.1"

    def test_prefixed_tag(self, make_history):
        """Tags are read with the format's prefix."""
        fmt = parse_version_format("vCC.CC.CC")
        history = make_history(fmt)
        history.commit("initial commit", tags=("v0.5.0",))
        history.commit("feat: x")
        _, versions = _versions(history, fmt)

        assert str(versions.head_version) == "v0.6.0"

    def test_lower_tag_is_violation(self, history):
        """A tag below an ancestor's version raises in strict mode."""
        history.commit("initial commit")
        history.commit("feat: x")
        history.commit("fix: y", tags=("0.0.5",))

        with pytest.raises(MonotonicityViolation) as excinfo:
            _versions(history)

        error = excinfo.value
        assert isinstance(error, VersionAssignmentError)
        assert len(error.violations) == 1
        assert error.tagged == Version.of(0, 0, 5)
        assert error.reached == Version.of(0, 1, 0)
        assert error.commit_hash == history.records[2].commit_hash

    def test_lower_tag_non_strict(self, history):
        """Without strict mode violations are reported and the tag kept."""
        history.commit("initial commit")
        history.commit("feat: x")
        history.commit("fix: y", tags=("0.0.5",))
        _, versions = _versions(history, strict=False)

        assert len(versions.violations) == 1
        assert versions[2] == Version.of(0, 0, 5)

    def test_all_violations_collected(self, history):
        """Bad tags on separate lines are all reported in one run."""
        history.commit("initial commit")
        feat = history.commit("feat: x")
        main_bad = history.commit("fix: y", tags=("0.0.5",))
        side_bad = history.commit(
            "fix: z", parents=[feat], branch="feature/z", tags=("0.0.7",)
        )
        head = history.commit("docs: w", parents=[main_bad])

        with pytest.raises(VersionAssignmentError) as excinfo:
            _versions(history, head=head)
        assert len(excinfo.value.violations) == 2

        _, versions = _versions(history, head=head, strict=False)

        assert len(versions.violations) == 2
        assert {v.commit_hash for v in versions.violations} == {main_bad, side_bad}
        assert versions[0] == Version.of(0, 0, 0)
        assert versions[1] == Version.of(0, 1, 0)
        assert len(versions) == 5

    def test_equal_tag_is_legal(self, history):
        """Re-tagging the reached version is allowed."""
        history.commit("initial commit")
        history.commit("feat: x", tags=("0.1.0",))
        history.commit("docs: y", tags=("0.1.0",))
        _, versions = _versions(history)

        assert versions.violations == ()


class TestBranches:
    """Tests for prerelease channels and merges."""

    def test_rc_branch(self, linear_history):
        """Commits on staging are release candidates."""
        linear_history.commit("fix: z", branch="staging")
        linear_history.commit("chore: tidy", branch="staging")
        graph, versions = _versions(linear_history)

        assert str(versions[3]) == "0.1.2-rc.0"
        assert str(versions[4]) == "0.1.2-rc.1"
        _assert_monotonic(graph, versions)

    def test_beta_and_alpha_branches(self, linear_history):
        """development and next map to beta and alpha."""
        base = linear_history.records[-1].commit_hash
        linear_history.commit("feat: beta thing", branch="development")
        linear_history.commit("feat: alpha thing", branch="next", parents=[base])
        _, versions = _versions(linear_history)

        assert str(versions[3]) == "0.2.0-beta.0"
        assert str(versions[4]) == "0.2.0-alpha.0"

    def test_named_branch(self, linear_history):
        """Feature branches get a channel named after the branch."""
        linear_history.commit("feat: login", branch="feature/login")
        linear_history.commit("fix: login", branch="feature/login")
        linear_history.commit("test: login", branch="feature/login")
        _, versions = _versions(linear_history)

        assert str(versions[3]) == "0.2.0-feature-login.0"
        assert str(versions[4]) == "0.2.1-feature-login.0"
        assert str(versions[5]) == "0.2.1-feature-login.1"

    def test_merge_releases(self, history):
        """A merge commit on main releases the merged prerelease."""
        history.commit("initial commit")
        feat = history.commit("feat: base")
        branch_tip = history.commit("feat: y", branch="feature/y")
        history.commit("Merge branch 'feature/y'", parents=[feat, branch_tip])
        graph, versions = _versions(history)

        assert str(versions[2]) == "0.2.0-feature-y.0"
        assert str(versions[3]) == "0.2.0"
        _assert_monotonic(graph, versions)

    def test_merge_takes_highest_parent(self, history):
        """A merge is never versioned below any of its parents."""
        history.commit("initial commit")
        a = history.commit("feat: a")
        b = history.commit("feat!: b", branch="feature/b")
        c = history.commit("fix: c", parents=[a])
        history.commit("Merge branch 'feature/b'", parents=[c, b])
        graph, versions = _versions(history)

        merge = versions.head_version
        assert merge >= versions[2]
        assert merge >= versions[3]
        assert str(merge) == "1.0.0"
        _assert_monotonic(graph, versions)

    def test_monotonic_everywhere(self, history):
        """No commit is versioned below a parent in a branchy history."""
        history.commit("initial commit")
        a = history.commit("feat: a")
        history.commit("fix: b1", branch="staging")
        b2 = history.commit("feat: b2", branch="staging")
        c1 = history.commit("docs: c1", parents=[a])
        c2 = history.commit("fix: c2", branch="feature/c", parents=[c1])
        d = history.commit("Merge branch 'staging'", parents=[c1, b2])
        history.commit("Merge branch 'feature/c'", parents=[d, c2])
        history.commit("chore: after")
        graph, versions = _versions(history)

        assert len(versions) == len(graph)
        _assert_monotonic(graph, versions)


class TestUnreachable:
    """Tests for commits HEAD cannot reach."""

    @pytest.fixture
    def diverged(self, history):
        history.commit("initial commit")
        head = history.commit("feat: a")
        history.commit("feat: elsewhere", branch="other")
        return history, head

    def test_included_by_default(self, diverged):
        """Unreachable commits are versioned by default."""
        history, head = diverged
        _, versions = _versions(history, head=head)

        assert len(versions) == 3
        assert str(versions[2]) == "0.2.0-other.0"

    def test_excluded(self, diverged):
        """include_unreachable=False skips them."""
        history, head = diverged
        config = CCVerConfig(include_unreachable=False)
        _, versions = _versions(history, config=config, head=head)

        assert len(versions) == 2
        assert versions.get(2) is None
        assert 2 not in versions
        with pytest.raises(KeyError):
            versions[2]


class TestVersionMap:
    """Tests for VersionMap helpers."""

    def test_lookups(self, linear_history):
        """Versions can be looked up by commit and by value."""
        graph, versions = _versions(linear_history)

        assert versions.for_commit(graph[1].commit_hash) == Version.of(0, 1, 0)
        assert versions.for_commit("f" * 40) is None
        assert versions.index_of(Version.of(0, 1, 1)) == 2
        assert versions.index_of(Version.of(9, 0, 0)) is None
        assert versions.graph is graph
        assert dict(versions) == {0: Version.of(0, 0, 0), 1: Version.of(0, 1, 0), 2: Version.of(0, 1, 1)}


class TestPeekVersion:
    """Tests for peek_version()."""

    WHEN = datetime(2024, 6, 1, tzinfo=UTC)

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("feat: z", "0.2.0"),
            ("fix: z", "0.1.2"),
            ("feat!: z", "1.0.0"),
            ("feat: z\n\nBREAKING CHANGE: removed y", "1.0.0"),
            ("chore: z", "0.1.2-0000000"),
        ],
    )
    def test_peek(self, linear_history, message: str, expected: str):
        """The version a new commit would get."""
        graph = linear_history.build()

        assert str(peek_version(graph, message, FORMAT, timestamp=self.WHEN)) == expected

    def test_peek_does_not_modify(self, linear_history):
        """Peeking twice gives the same answer and leaves the graph alone."""
        graph = linear_history.build()
        before = assign_versions(graph, FORMAT)

        first = peek_version(graph, "feat: z", FORMAT, timestamp=self.WHEN)
        second = peek_version(graph, "feat: z", FORMAT, timestamp=self.WHEN)

        assert first == second
        assert len(graph) == 3
        assert dict(assign_versions(graph, FORMAT)) == dict(before)

    def test_peek_on_branch(self, linear_history):
        """A peeked commit is on HEAD's branch."""
        linear_history.commit("fix: z", branch="staging")
        graph = linear_history.build()

        assert str(peek_version(graph, "chore: more", FORMAT, timestamp=self.WHEN)) == "0.1.2-rc.1"

    def test_peek_calendar(self, make_history):
        """Peeked calendar versions use the given timestamp."""
        fmt = parse_version_format("YYYY.MM.CC")
        history = make_history(fmt)
        history.commit("initial commit")
        graph = history.build()

        peeked = peek_version(graph, "feat: z", fmt, timestamp=self.WHEN)

        assert peeked == parse_version("2024.06.0", fmt)
