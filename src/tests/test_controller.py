from __future__ import annotations

from conftest import make_article, make_page

from quickbyte_tui.datamodels import Mode, ModeKind, RequestStatus
from quickbyte_tui.errors import GatewayError
from quickbyte_tui.session import Session


def test_initial_state_is_headlines_page_one(controller):
    state = controller.state
    assert state.mode == Mode.headlines()
    assert state.page == 1
    assert state.articles_request.status is RequestStatus.IDLE


def test_start_fetches_headlines_and_syncs_favorites(controller, gateway, dispatcher):
    gateway.headlines.return_value = make_page("h", 12)
    controller.start()
    assert sorted(dispatcher.names()) == ["articles_loader", "favorites_sync"]
    dispatcher.run_all()
    gateway.headlines.assert_called_once_with(1, 12)
    gateway.favorites_list.assert_called_once_with("u1")
    assert len(controller.articles) == 12
    assert controller.state.articles_request.status is RequestStatus.SUCCEEDED


def test_loading_is_set_before_the_fetch_resolves(controller, dispatcher):
    controller.select_category("Tech")
    assert controller.state.loading
    dispatcher.run_all()
    assert not controller.state.loading


def test_select_category_resets_page_and_shows_name_in_search_box(
    controller, gateway, dispatcher
):
    gateway.headlines.return_value = make_page("h", 12)
    controller.refresh()
    dispatcher.run_all()
    controller.next_page()
    dispatcher.run_all()
    assert controller.page == 2

    controller.select_category("Sports")
    assert controller.mode == Mode.category("Sports")
    assert controller.page == 1
    assert controller.state.search_text == "Sports"
    dispatcher.run_all()
    gateway.category.assert_called_once_with("Sports", 1, 12)
    gateway.search.assert_not_called()


def test_submit_search_trims_query(controller, gateway, dispatcher):
    controller.submit_search("  climate  ")
    assert controller.mode == Mode.search("climate")
    dispatcher.run_all()
    gateway.search.assert_called_once_with("climate", 1, 12)


def test_blank_search_is_a_silent_no_op(controller, dispatcher):
    controller.select_category("Tech")
    dispatcher.run_all()

    for query in ("", "   ", "\t\n"):
        assert controller.submit_search(query) is None

    assert dispatcher.jobs == []
    assert controller.mode == Mode.category("Tech")
    assert controller.state.error is None


def test_each_transition_issues_exactly_one_fetch(controller, dispatcher):
    controller.select_headlines()
    controller.submit_search("x")
    controller.select_category("Tech")
    controller.select_favorites()
    assert dispatcher.names() == ["articles_loader"] * 4


def test_later_request_wins_even_if_earlier_response_arrives_last(
    controller, gateway, dispatcher
):
    gateway.search.return_value = make_page("search", 3)
    gateway.category.return_value = make_page("tech", 4)

    controller.submit_search("x")
    job_a = dispatcher.pop("articles_loader")
    controller.select_category("tech")
    job_b = dispatcher.pop("articles_loader")

    dispatcher.complete(job_b)
    dispatcher.complete(job_a)

    assert controller.mode == Mode.category("tech")
    assert [a.id for a in controller.articles] == [f"tech-{i}" for i in range(4)]
    assert controller.state.articles_request.status is RequestStatus.SUCCEEDED


def test_stale_failure_does_not_clobber_current_result(controller, gateway, dispatcher):
    gateway.search.side_effect = GatewayError("boom", operation="search")
    gateway.category.return_value = make_page("tech", 2)

    controller.submit_search("x")
    job_a = dispatcher.pop("articles_loader")
    controller.select_category("tech")
    dispatcher.run_all()
    dispatcher.complete(job_a)

    assert controller.state.error is None
    assert len(controller.articles) == 2


def test_stale_result_is_dropped_while_newer_request_is_in_flight(
    controller, gateway, dispatcher
):
    gateway.search.return_value = make_page("search", 3)
    controller.submit_search("x")
    job_a = dispatcher.pop("articles_loader")
    controller.select_category("tech")

    dispatcher.complete(job_a)

    assert controller.articles == ()
    assert controller.state.loading


def test_previous_page_is_clamped_at_one(controller, dispatcher):
    controller.refresh()
    dispatcher.run_all()
    assert controller.previous_page() is None
    assert controller.page == 1
    assert dispatcher.jobs == []


def test_next_page_blocked_on_short_page(controller, gateway, dispatcher):
    gateway.headlines.return_value = make_page("h", 5)
    controller.refresh()
    dispatcher.run_all()

    assert controller.next_page() is None
    assert controller.page == 1
    assert dispatcher.jobs == []


def test_next_page_blocked_while_loading_and_after_failure(
    controller, gateway, dispatcher
):
    controller.refresh()
    assert controller.next_page() is None

    gateway.headlines.side_effect = GatewayError("down", operation="headlines")
    dispatcher.run_all()
    assert controller.next_page() is None


def test_pagination_disabled_in_favorites_mode(controller, gateway, dispatcher):
    gateway.favorites_list.return_value = make_page("fav", 20)
    controller.select_favorites()
    dispatcher.run_all()

    assert controller.next_page() is None
    assert controller.previous_page() is None
    assert controller.page == 1


def test_category_paging_scenario(controller, gateway, dispatcher):
    page_one = make_page("sports1", 12)
    page_two = make_page("sports2", 12)
    gateway.headlines.return_value = make_page("h", 12)
    gateway.category.side_effect = [page_one, page_two]

    controller.start()
    dispatcher.run_all()
    assert len(controller.articles) == 12

    controller.select_category("Sports")
    assert dispatcher.names() == ["articles_loader"]
    dispatcher.run_all()
    assert controller.articles == page_one

    controller.next_page()
    assert controller.page == 2
    assert controller.articles == ()
    assert dispatcher.names() == ["articles_loader"]
    dispatcher.run_all()

    assert gateway.category.call_args_list[-1].args == ("Sports", 2, 12)
    assert controller.articles == page_two


def test_next_then_previous_within_search(controller, gateway, dispatcher):
    gateway.search.return_value = make_page("s", 12)
    controller.submit_search("rust")
    dispatcher.run_all()
    controller.next_page()
    dispatcher.run_all()
    controller.previous_page()
    dispatcher.run_all()

    assert controller.page == 1
    assert controller.mode == Mode.search("rust")
    pages = [c.args[1] for c in gateway.search.call_args_list]
    assert pages == [1, 2, 1]


def test_fetch_failure_is_surfaced_and_cleared_on_next_action(
    controller, gateway, dispatcher
):
    gateway.search.side_effect = GatewayError("API rate limit exceeded", operation="search")
    controller.submit_search("x")
    dispatcher.run_all()

    state = controller.state
    assert state.error == "API rate limit exceeded"
    assert state.articles_request.status is RequestStatus.FAILED
    assert state.articles_request.reason == "API rate limit exceeded"
    assert gateway.search.call_count == 1

    controller.select_headlines()
    assert controller.state.error is None


def test_crashed_worker_still_resolves_loading(controller, dispatcher):
    controller.refresh()
    job = dispatcher.pop("articles_loader")
    job.fail(RuntimeError("thread died"))

    state = controller.state
    assert not state.loading
    assert state.articles_request.status is RequestStatus.FAILED
    assert state.error == "thread died"


def test_unauthenticated_favorites_is_rejected_locally(anon_controller, gateway, dispatcher):
    anon_controller.select_category("Tech")
    dispatcher.run_all()

    assert anon_controller.select_favorites() is None

    assert dispatcher.jobs == []
    gateway.favorites_list.assert_not_called()
    assert anon_controller.mode == Mode.category("Tech")
    assert anon_controller.state.error == "Please log in to view favorites"


def test_favorites_fetch_refreshes_cache(controller, gateway, dispatcher):
    gateway.favorites_list.return_value = make_page("fav", 3)
    controller.select_favorites()
    dispatcher.run_all()

    assert controller.mode.kind is ModeKind.FAVORITES
    assert all(controller.is_favorite(f"fav-{i}") for i in range(3))


def test_empty_favorites_is_not_an_error(controller, gateway, dispatcher):
    gateway.favorites_list.return_value = ()
    controller.select_favorites()
    dispatcher.run_all()

    assert controller.articles == ()
    assert controller.state.error is None
    assert controller.state.articles_request.status is RequestStatus.SUCCEEDED


def test_toggle_adds_favorite_after_confirmation(controller, gateway, dispatcher):
    article = make_article("a1")
    assert controller.toggle_favorite(article)
    assert not controller.is_favorite("a1")

    dispatcher.run_all()

    gateway.add_favorite.assert_called_once_with("u1", "a1")
    assert controller.is_favorite("a1")


def test_failed_toggle_leaves_membership_and_alerts(controller, gateway, dispatcher, notices):
    gateway.add_favorite.side_effect = GatewayError("nope", operation="add")
    controller.toggle_favorite(make_article("a1"))
    dispatcher.run_all()

    assert not controller.is_favorite("a1")
    assert notices == [("error", "There was an error updating your favorites")]
    assert gateway.add_favorite.call_count == 1


def test_toggle_while_signed_out_makes_no_call(anon_controller, gateway, dispatcher, notices):
    assert not anon_controller.toggle_favorite(make_article("a1"))
    assert dispatcher.jobs == []
    gateway.add_favorite.assert_not_called()
    assert notices == [("warning", "Please log in to add favorites")]


def test_toggle_ignored_while_favorites_are_syncing(controller, gateway, dispatcher):
    controller.sync_favorites()
    assert not controller.toggle_favorite(make_article("a1"))
    assert dispatcher.names() == ["favorites_sync"]


def test_removing_in_favorites_mode_prunes_display_without_fetch(
    controller, gateway, dispatcher
):
    gateway.favorites_list.return_value = make_page("fav", 3)
    controller.select_favorites()
    dispatcher.run_all()
    gateway.favorites_list.reset_mock()

    controller.toggle_favorite(controller.articles[1])
    dispatcher.run_all()

    gateway.remove_favorite.assert_called_once_with("u1", "fav-1")
    assert [a.id for a in controller.articles] == ["fav-0", "fav-2"]
    assert not controller.is_favorite("fav-1")
    gateway.favorites_list.assert_not_called()


def test_removal_outside_favorites_mode_keeps_display(controller, gateway, dispatcher):
    gateway.headlines.return_value = make_page("h", 3)
    controller.refresh()
    dispatcher.run_all()
    controller.favorites.replace({"h-0"})

    controller.toggle_favorite(controller.articles[0])
    dispatcher.run_all()

    assert len(controller.articles) == 3
    assert not controller.is_favorite("h-0")


def test_favorites_sync_failure_is_non_blocking(controller, gateway, dispatcher):
    controller.favorites.replace({"kept"})
    gateway.favorites_list.side_effect = GatewayError("down", operation="favorites")
    gateway.headlines.return_value = make_page("h", 2)

    controller.start()
    dispatcher.run_all()

    state = controller.state
    assert state.favorites_request.status is RequestStatus.FAILED
    assert state.error is None
    assert len(state.articles) == 2
    assert controller.is_favorite("kept")


def test_sign_in_triggers_favorites_sync(anon_controller, anonymous, gateway, dispatcher):
    gateway.favorites_list.return_value = make_page("fav", 2)
    anonymous.set(Session.signed_in("u9", "bob"))

    assert dispatcher.names() == ["favorites_sync"]
    dispatcher.run_all()
    gateway.favorites_list.assert_called_once_with("u9")
    assert anon_controller.is_favorite("fav-0")
    assert anon_controller.state.username == "bob"


def test_logout_clears_favorites_and_leaves_favorites_mode(
    controller, signed_in, gateway, dispatcher
):
    gateway.favorites_list.return_value = make_page("fav", 2)
    controller.select_favorites()
    dispatcher.run_all()
    assert controller.is_favorite("fav-0")

    signed_in.expire()

    assert controller.mode == Mode.headlines()
    assert controller.page == 1
    assert not controller.is_favorite("fav-0")
    assert dispatcher.names() == ["articles_loader"]
    assert not controller.state.authenticated


def test_listeners_see_every_change(controller, dispatcher):
    seen = []
    controller.subscribe(seen.append)
    controller.submit_search("x")
    dispatcher.run_all()

    assert [s.loading for s in seen] == [True, False]
    assert seen[-1].mode == Mode.search("x")


def test_unauthorized_favorites_fetch_expires_session(
    controller, signed_in, gateway, dispatcher, notices
):
    gateway.favorites_list.side_effect = GatewayError(
        "Unauthorized", operation="favorites", status_code=401
    )
    controller.select_favorites()
    dispatcher.run_all()

    assert not signed_in.current.authenticated
    assert controller.mode == Mode.headlines()
    assert ("warning", "Your session has expired. Please log in again.") in notices


def test_unauthorized_toggle_expires_session(controller, signed_in, gateway, dispatcher):
    gateway.add_favorite.side_effect = GatewayError(
        "Unauthorized", operation="add", status_code=401
    )
    controller.toggle_favorite(make_article("a1"))
    dispatcher.run_all()

    assert not signed_in.current.authenticated
    assert not controller.is_favorite("a1")


def test_sync_for_previous_user_does_not_finish_current_sync(
    controller, signed_in, gateway, dispatcher
):
    controller.sync_favorites()
    signed_in.set(Session.signed_in("u2", "carol"))
    assert dispatcher.names() == ["favorites_sync", "favorites_sync"]

    dispatcher.complete(dispatcher.jobs.pop(0))
    assert controller.state.favorites_request.status is RequestStatus.LOADING

    dispatcher.run_all()
    assert controller.state.favorites_request.status is RequestStatus.SUCCEEDED


def test_headlines_clears_category_from_search_box(controller, dispatcher):
    controller.select_category("Sports")
    assert controller.state.search_text == "Sports"

    controller.select_headlines()

    assert controller.state.search_text == ""
    assert controller.mode == Mode.headlines()


def test_favorites_snapshot_older_than_confirmed_add_keeps_the_add(
    controller, gateway, dispatcher
):
    gateway.favorites_list.return_value = make_page("fav", 2)
    controller.toggle_favorite(make_article("a1"))
    controller.select_favorites()

    fetch = dispatcher.pop("articles_loader")
    snapshot = fetch.run()
    dispatcher.complete(dispatcher.pop("favorite_toggle"))
    assert controller.is_favorite("a1")

    fetch.apply(snapshot)

    assert controller.is_favorite("a1")
    assert [a.id for a in controller.articles] == ["fav-0", "fav-1"]


def test_second_toggle_of_pending_article_is_ignored(controller, gateway, dispatcher):
    article = make_article("a1")
    assert controller.toggle_favorite(article)
    assert not controller.toggle_favorite(article)
    assert "a1" in controller.state.pending_favorites
    assert controller.toggle_favorite(make_article("a2"))

    dispatcher.run_all()

    gateway.add_favorite.assert_any_call("u1", "a1")
    assert gateway.add_favorite.call_count == 2
    gateway.remove_favorite.assert_not_called()
    assert controller.state.pending_favorites == frozenset()

    assert controller.toggle_favorite(article)
    dispatcher.run_all()
    gateway.remove_favorite.assert_called_once_with("u1", "a1")


def test_failed_toggle_releases_pending_article(controller, gateway, dispatcher):
    gateway.add_favorite.side_effect = GatewayError("nope", operation="add")
    article = make_article("a1")
    controller.toggle_favorite(article)
    dispatcher.run_all()

    assert controller.state.pending_favorites == frozenset()
    assert controller.toggle_favorite(article)
