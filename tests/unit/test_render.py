"""Unit tests for row formatting, status text and drawing."""

from unittest.mock import MagicMock, patch

from conftest import BASE_TIME, make_issue, make_pr, make_repo, make_run
from forgeview.actions import ListKind, RepoTab
from forgeview.models import ActionConclusion, ActionStatus, ChecksStatus, MyPr, ReviewRequest
from forgeview.render import _truncate, draw, format_row, key_hints, row_columns, screen_title, status_line, tab_bar
from forgeview.session import InputMode, Screen


def test_truncate():
    assert _truncate("abcdefgh", 5) == "ab..."
    assert _truncate("abcdefgh", 2) == "ab"
    assert _truncate("ab", 4) == "ab  "
    assert _truncate("ab", 4, align="right") == "  ab"
    assert _truncate("ab", 0) == ""


class TestRowColumns:

    def test_home_rows(self, later):
        request = ReviewRequest("acme", "widgets", 7, "Add widgets", "dave", updated_at=BASE_TIME)
        assert row_columns(request, later) == ["acme/widgets#7", "Add widgets", "@dave", "2h ago"]
        mine = MyPr("acme", "gadgets", 9, "Tune", checks_status=ChecksStatus.FAILURE, updated_at=BASE_TIME)
        assert row_columns(mine, later)[2] == "fail"

    def test_repo_and_issue(self, later):
        assert row_columns(make_repo(3), later) == ["acme/repo-3", "Repository 3", "*3", "2h ago"]
        issue = make_issue(10)
        issue.labels = ["bug", "ui"]
        issue.comments = 4
        assert row_columns(issue, later) == ["#10", "Issue 10 [bug, ui]", "@bob", "4 comments"]

    def test_action_run_status(self, later):
        run = make_run(1)
        assert row_columns(run, later)[0] == "Queued"
        run.status = ActionStatus.COMPLETED
        run.conclusion = ActionConclusion.SUCCESS
        assert row_columns(run, later)[0] == "ok"


def test_format_row_fits_width():
    row = format_row(["#12", "A rather long pull request title that will not fit", "@alice", "3d ago"], 40)
    assert len(row) == 40
    assert row.startswith("#12     ")
    assert row.endswith("@alice  3d ago")
    assert "..." in row


class TestStatusLine:

    def test_idle(self, session):
        assert status_line(session) == ("", "accent")

    def test_loading(self, session):
        session.loading = True
        assert status_line(session) == ("Loading...", "accent")

    def test_flash_beats_loading_and_expires(self, session, clock):
        session.loading = True
        session.flash_message = "PR merged!"
        session.flash_at = clock()
        assert status_line(session) == ("PR merged!", "flash")
        clock.advance(3.0)
        assert status_line(session) == ("Loading...", "accent")

    def test_error_beats_flash(self, session, clock):
        session.flash_message = "PR merged!"
        session.flash_at = clock()
        session.error = "API error: boom"
        assert status_line(session) == ("API error: boom", "error")

    def test_search_prompt_first(self, session):
        session.error = "API error: boom"
        session.input_mode = InputMode.SEARCH
        session.search.query = "wid"
        assert status_line(session)[0] == "/wid  (0 matches)"

    def test_active_search(self, session):
        session.search.query = "wid"
        session.search.active = True
        assert status_line(session)[0] == "/wid  no matches"
        session.search.match_indices = [1, 4]
        session.search.current_match = 1
        assert status_line(session)[0].startswith("/wid  [2/2]")


class TestChrome:

    def test_titles(self, session):
        assert screen_title(session) == "Fake  Home"
        session.screen = Screen.PR_DETAIL
        session.current_repo = ("acme", "widgets")
        session.current_pr = make_pr(5)
        assert screen_title(session) == "acme/widgets  PR #5"

    def test_tab_bars(self, session):
        session.review_requests = [ReviewRequest("acme", "widgets", 7, "Add widgets", "dave")]
        assert tab_bar(session) == "[Review Requests (1)]   My PRs (0) "
        session.screen = Screen.REPO_VIEW
        session.repo_tab = RepoTab.ISSUES
        assert "[Issues]" in tab_bar(session)
        assert " Pull Requests " in tab_bar(session)
        session.screen = Screen.COMMIT_DETAIL
        assert tab_bar(session) == ""

    def test_key_hints_follow_mode(self, session):
        session.input_mode = InputMode.CONFIRM
        assert key_hints(session) == "y: yes  n/Esc: no"


def fake_screen(height=24, width=80):
    stdscr = MagicMock()
    stdscr.getmaxyx.return_value = (height, width)
    return stdscr


def drawn_text(stdscr):
    return [c.args[2] for c in stdscr.addnstr.call_args_list]


class TestDraw:

    def test_repo_list(self, session):
        session.screen = Screen.REPO_LIST
        session.lists[ListKind.REPOS] = [make_repo(0), make_repo(1)]
        session.indices[ListKind.REPOS] = 1
        stdscr = fake_screen()

        with patch("forgeview.render.curses.doupdate"):
            draw(stdscr, session, {})

        text = drawn_text(stdscr)
        assert text[0] == "Fake  Repositories"
        assert any(t.startswith("  acme/repo-0") for t in text)
        assert any(t.startswith("> acme/repo-1") for t in text)

    def test_empty_list_placeholder(self, session):
        session.screen = Screen.REPO_LIST
        session.loading = True
        stdscr = fake_screen()

        with patch("forgeview.render.curses.doupdate"):
            draw(stdscr, session, {})

        assert "Loading..." in drawn_text(stdscr)

    def test_tiny_terminal_draws_nothing(self, session):
        stdscr = fake_screen(height=3, width=80)
        draw(stdscr, session, {})
        stdscr.addnstr.assert_not_called()
        stdscr.refresh.assert_called_once()
