# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for interactive scenario checks against scripted mock pages.

Each fake page keeps a tiny widget state machine: press() mutates it and
evaluate() reports it back in the shape the page-side state query returns.
Real-browser coverage of the same scenarios lives in test_browser_scenarios.
"""

from __future__ import annotations

import pytest

from a11yprobe import Candidate
from a11yprobe.checks import scenarios
from a11yprobe.checks.scenarios import (
    _for_each_candidate,
    check_carousel_interaction_scenario,
    check_disclosure_interaction_scenario,
    check_drag_drop_keyboard_alternative_scenario,
    check_menu_interaction_scenario,
    check_modal_interaction_scenario,
    check_tabs_interaction_scenario,
)
from tests._helpers import make_ctx, make_page


def _scripted_page(handlers: dict[str, object], on_press=None):
    """Mock page: evaluate() looks up the script body in handlers."""

    def evaluate(script, arg):
        for body, handler in handlers.items():
            if body in script:
                return handler(arg) if callable(handler) else handler
        return None

    page = make_page(evaluate)
    if on_press is not None:

        async def press(key):
            on_press(key)

        page.press.side_effect = press
    return page


# =========================================================================
# Candidate isolation
# =========================================================================


class TestForEachCandidate:
    @pytest.mark.asyncio
    async def test_failing_candidate_skipped(self):
        async def step(ctx, cand):
            if cand.selector == "#bad":
                raise RuntimeError("node detached")
            return [ctx.issue(message="found", selector=cand.selector)]

        cands = [Candidate("#a"), Candidate("#bad"), Candidate("#c")]
        issues = await _for_each_candidate(make_ctx(), "test", cands, step)
        assert [i.selector for i in issues] == ["#a", "#c"]


# =========================================================================
# Modal
# =========================================================================


def _modal_page(*, focus_moves: bool, escape_closes: bool = True, restores_focus: bool = True):
    state = {"open": False, "focus": "trigger"}

    def on_press(key):
        if key == "Enter" and not state["open"]:
            state["open"] = True
            if focus_moves:
                state["focus"] = "dialog"
        elif key == "Escape" and state["open"] and escape_closes:
            state["open"] = False
            state["focus"] = "trigger" if restores_focus else "body"

    def modal_state(arg):
        return {
            "count": 1 if state["open"] else 0,
            "targetVisible": state["open"],
            "focusInDialog": state["open"] and state["focus"] == "dialog",
            "focusOnTrigger": state["focus"] == "trigger",
            "active": "#open" if state["focus"] == "trigger" else state["focus"],
        }

    return _scripted_page(
        {
            scenarios._MODAL_CANDIDATES_JS: [{"selector": "#open", "html": "<button id=open>", "controls": "dlg"}],
            scenarios._MODAL_STATE_JS: modal_state,
        },
        on_press,
    )


class TestModalScenario:
    @pytest.mark.asyncio
    async def test_focus_not_moved_into_dialog(self):
        issues = await check_modal_interaction_scenario(make_ctx(_modal_page(focus_moves=False)))
        messages = [i.message for i in issues]
        assert "Dialog opened but focus did not move into it" in messages
        issue = next(i for i in issues if "focus did not move into it" in i.message)
        assert issue.impact == "serious"
        assert issue.rule_id == "wcag-2.4.3"
        assert "opened with Enter" in issue.evidence

    @pytest.mark.asyncio
    async def test_well_behaved_dialog(self):
        assert await check_modal_interaction_scenario(make_ctx(_modal_page(focus_moves=True))) == []

    @pytest.mark.asyncio
    async def test_escape_does_not_close(self):
        issues = await check_modal_interaction_scenario(make_ctx(_modal_page(focus_moves=True, escape_closes=False)))
        assert [(i.rule_id, i.message) for i in issues] == [("wcag-2.1.2", "Dialog did not close with Escape")]

    @pytest.mark.asyncio
    async def test_focus_not_returned(self):
        issues = await check_modal_interaction_scenario(
            make_ctx(_modal_page(focus_moves=True, restores_focus=False))
        )
        assert len(issues) == 1
        assert issues[0].impact == "moderate"
        assert "did not return to the trigger" in issues[0].message


# =========================================================================
# Menu
# =========================================================================


def _menu_page(*, target_role="menu", arrow_moves=True, escape_resets=True):
    state = {"open": False, "focus": "trigger"}

    def on_press(key):
        if key == "Enter" and not state["open"]:
            state["open"] = True
        elif key == "ArrowDown" and state["open"] and arrow_moves:
            state["focus"] = "item"
        elif key == "Escape" and state["open"]:
            state["open"] = False
            if escape_resets:
                state["focus"] = "trigger"

    def menu_state(arg):
        expanded = "true" if state["open"] else "false"
        if not escape_resets and not state["open"] and state["focus"] == "item":
            expanded = "true"
        return {
            "expanded": expanded,
            "hasTarget": True,
            "targetRole": target_role,
            "targetVisible": state["open"],
            "focusOnTrigger": state["focus"] == "trigger",
            "focusOnMenuItem": state["focus"] == "item",
            "focusInTarget": state["focus"] == "item",
            "active": state["focus"],
        }

    return _scripted_page(
        {
            scenarios._MENU_CANDIDATES_JS: [{"selector": "#menu-btn", "html": "<button>", "controls": "menu-list"}],
            scenarios._MENU_STATE_JS: menu_state,
        },
        on_press,
    )


class TestMenuScenario:
    @pytest.mark.asyncio
    async def test_well_behaved_menu(self):
        assert await check_menu_interaction_scenario(make_ctx(_menu_page())) == []

    @pytest.mark.asyncio
    async def test_controlled_element_without_menu_role(self):
        issues = await check_menu_interaction_scenario(make_ctx(_menu_page(target_role="list")))
        assert [i.rule_id for i in issues] == ["wcag-4.1.2"]
        assert 'role="menu"' in issues[0].message

    @pytest.mark.asyncio
    async def test_arrow_down_does_not_enter_menu(self):
        issues = await check_menu_interaction_scenario(make_ctx(_menu_page(arrow_moves=False)))
        assert [i.message for i in issues] == ["ArrowDown did not move focus into the open menu"]

    @pytest.mark.asyncio
    async def test_escape_leaves_state_and_focus(self):
        issues = await check_menu_interaction_scenario(make_ctx(_menu_page(escape_resets=False)))
        messages = {i.message for i in issues}
        assert "aria-expanded was not reset to false after Escape" in messages
        assert "Focus was not restored to the menu trigger after Escape" in messages
        assert all(i.impact == "moderate" for i in issues)


# =========================================================================
# Tabs
# =========================================================================


def _tabs_page(*, arrow_moves=True, panel_visible=True, panel_resolved=True):
    state = {"idx": 0}

    def on_press(key):
        if key == "ArrowRight" and arrow_moves:
            state["idx"] = 1

    def tabs_state(arg):
        return {
            "activeIdx": state["idx"],
            "selectedIdx": state["idx"],
            "selectedCount": 1,
            "selectedControls": f"panel-{state['idx']}",
            "panelResolved": panel_resolved,
            "panelVisible": panel_visible,
            "active": f"#tab-{state['idx']}",
        }

    return _scripted_page(
        {
            scenarios._TABS_CANDIDATES_JS: [
                {"selector": "#tabs", "html": "<div role=tablist>", "firstTab": "#tab-0", "tabCount": 3}
            ],
            scenarios._TABS_STATE_JS: tabs_state,
        },
        on_press,
    )


class TestTabsScenario:
    @pytest.mark.asyncio
    async def test_well_behaved_tabs(self):
        assert await check_tabs_interaction_scenario(make_ctx(_tabs_page())) == []

    @pytest.mark.asyncio
    async def test_no_arrow_support(self):
        issues = await check_tabs_interaction_scenario(make_ctx(_tabs_page(arrow_moves=False)))
        assert [(i.rule_id, i.message) for i in issues] == [("wcag-2.1.1", "Tab list did not respond to ArrowRight")]

    @pytest.mark.asyncio
    async def test_hidden_panel(self):
        issues = await check_tabs_interaction_scenario(make_ctx(_tabs_page(panel_visible=False)))
        assert [i.message for i in issues] == ["Selected tab panel is not visible after keyboard navigation"]

    @pytest.mark.asyncio
    async def test_unresolved_controls(self):
        issues = await check_tabs_interaction_scenario(make_ctx(_tabs_page(panel_resolved=False)))
        assert [i.rule_id for i in issues] == ["wcag-4.1.2"]
        assert "exactly one selected tab" in issues[0].message


# =========================================================================
# Disclosure
# =========================================================================


def _disclosure_page(toggle_keys: tuple[str, ...]):
    state = {"expanded": False}
    pressed: list[str] = []

    def on_press(key):
        pressed.append(key)
        if key in toggle_keys:
            state["expanded"] = not state["expanded"]

    page = _scripted_page(
        {
            scenarios._DISCLOSURE_CANDIDATES_JS: [{"selector": "#faq-1", "html": "<button>", "controls": "a1"}],
            scenarios._DISCLOSURE_STATE_JS: lambda arg: {
                "expanded": "true" if state["expanded"] else "false",
                "panelVisible": state["expanded"],
            },
        },
        on_press,
    )
    return page, state, pressed


class TestDisclosureScenario:
    @pytest.mark.asyncio
    async def test_enter_toggles_and_is_restored(self):
        page, state, pressed = _disclosure_page(("Enter", "Space"))
        assert await check_disclosure_interaction_scenario(make_ctx(page)) == []
        assert pressed == ["Enter", "Enter"]
        assert state["expanded"] is False

    @pytest.mark.asyncio
    async def test_space_fallback(self):
        page, _, pressed = _disclosure_page(("Space",))
        assert await check_disclosure_interaction_scenario(make_ctx(page)) == []
        assert pressed == ["Enter", "Space", "Space"]

    @pytest.mark.asyncio
    async def test_no_keyboard_toggle(self):
        page, _, _ = _disclosure_page(())
        issues = await check_disclosure_interaction_scenario(make_ctx(page))
        assert [(i.rule_id, i.impact) for i in issues] == [("wcag-2.1.1", "moderate")]


# =========================================================================
# Carousel
# =========================================================================


def _carousel_page(next_works: bool):
    state = {"slide": 0}

    def on_press(key):
        if next_works and key == "Enter":
            state["slide"] += 1

    return _scripted_page(
        {
            scenarios._CAROUSEL_CANDIDATES_JS: [
                {"selector": "#hero", "html": "<div class=carousel>", "next": "#hero > button.next", "slideCount": 3}
            ],
            scenarios._CAROUSEL_SIGNATURE_JS: lambda arg: f"slide-{state['slide']}#none#0",
        },
        on_press,
    )


class TestCarouselScenario:
    @pytest.mark.asyncio
    async def test_next_without_handler(self):
        issues = await check_carousel_interaction_scenario(make_ctx(_carousel_page(next_works=False)))
        assert len(issues) == 1
        assert "next control" in issues[0].message
        assert issues[0].selector == "#hero > button.next"
        assert issues[0].target == ["#hero > button.next", "#hero"]

    @pytest.mark.asyncio
    async def test_working_next(self):
        assert await check_carousel_interaction_scenario(make_ctx(_carousel_page(next_works=True))) == []


# =========================================================================
# Drag and drop
# =========================================================================


def _drag_page(*, focusable: bool, has_alternative: bool, responds: bool = False, takes_focus: bool | None = None):
    """Draggable #card; ``responds`` reorders it on any ArrowDown press.

    ``takes_focus`` defaults to ``focusable``. When focus does not land on
    the card, key presses reach some other element and still "respond".
    """
    state = {"index": 0}
    if takes_focus is None:
        takes_focus = focusable

    def on_press(key):
        if responds and key == "ArrowDown":
            state["index"] = 1

    return _scripted_page(
        {
            scenarios._DRAG_CANDIDATES_JS: [
                {
                    "selector": "#card",
                    "html": "<div draggable=true>",
                    "focusable": focusable,
                    "hasAlternative": has_alternative,
                }
            ],
            scenarios._DRAG_STATE_JS: lambda arg: {"index": state["index"], "grabbed": None, "live": ""},
            scenarios._HOLDS_FOCUS_JS: takes_focus,
        },
        on_press,
    )


class TestDragDropScenario:
    @pytest.mark.asyncio
    async def test_unfocusable_no_alternative_serious(self):
        issues = await check_drag_drop_keyboard_alternative_scenario(
            make_ctx(_drag_page(focusable=False, has_alternative=False))
        )
        assert len(issues) == 1
        assert issues[0].impact == "serious"
        assert issues[0].rule_id == "wcag-2.5.7"
        assert "without obvious keyboard alternative" in issues[0].message

    @pytest.mark.asyncio
    async def test_focusable_no_alternative_moderate(self):
        issues = await check_drag_drop_keyboard_alternative_scenario(
            make_ctx(_drag_page(focusable=True, has_alternative=False))
        )
        assert [i.impact for i in issues] == ["moderate"]

    @pytest.mark.asyncio
    async def test_move_buttons_pass(self):
        page = _drag_page(focusable=True, has_alternative=True)
        assert await check_drag_drop_keyboard_alternative_scenario(make_ctx(page)) == []
        page.press.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_keyboard_reorder_pass(self):
        page = _drag_page(focusable=True, has_alternative=False, responds=True)
        assert await check_drag_drop_keyboard_alternative_scenario(make_ctx(page)) == []

    @pytest.mark.asyncio
    async def test_no_keys_sent_when_item_cannot_take_focus(self):
        page = _drag_page(focusable=False, has_alternative=False, responds=True)
        issues = await check_drag_drop_keyboard_alternative_scenario(make_ctx(page))
        assert [i.impact for i in issues] == ["serious"]
        page.focus.assert_awaited_once_with("#card")
        page.press.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_focus_elsewhere_is_not_a_response(self):
        page = _drag_page(focusable=True, has_alternative=False, responds=True, takes_focus=False)
        issues = await check_drag_drop_keyboard_alternative_scenario(make_ctx(page))
        assert [i.impact for i in issues] == ["moderate"]
        page.press.assert_not_awaited()
