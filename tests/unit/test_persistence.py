"""
Tests for the persistence state machine: create/save/update/delete, caching,
hooks and cascades, driven through a recording transport.
"""

import asyncio

import pytest

from activeresource import define_model
from activeresource.core.exceptions import (
    CascadeDestroyError,
    InvalidStateError,
    RecordInvalidError,
    TransportAPIError,
    TransportConnectionError,
)
from activeresource.orm.instance import DESTROYED, SAVED, UNSAVED


class TestNew:
    def test_new_never_calls_the_transport(self, blog):
        comment = blog.Comment.new({"body": "hi"})

        assert comment.state == UNSAVED
        assert comment.pk is None
        assert blog.transport.calls == []

    def test_field_defaults(self, transport):
        Task = define_model("Task", {"done": False, "tags": list})
        first, second = Task.new(), Task.new()

        assert first.done is False
        first.tags.append("x")
        assert second.tags == []

    def test_unknown_attribute(self, blog):
        with pytest.raises(AttributeError):
            blog.Comment.new().missing

    def test_update_is_local(self, blog):
        comment = blog.Comment.new()
        assert comment.update(body="edited") is comment
        assert comment.body == "edited"
        assert blog.transport.calls == []


class TestValidationGate:
    """Comment body: presence plus length in range(1, 140)."""

    def test_empty_body_is_rejected_without_a_request(self, blog):
        comment = blog.Comment.new({"body": ""})

        with pytest.raises(RecordInvalidError) as exc_info:
            asyncio.run(comment.save())

        assert "Body can't be blank" in comment.errors["body"]
        assert comment.invalid
        assert comment.state == UNSAVED
        assert blog.transport.calls == []
        assert exc_info.value.instance is comment
        assert "body" in exc_info.value.errors

    def test_long_body_is_still_invalid_after_fixing_presence(self, blog):
        comment = blog.Comment.new({"body": ""})
        comment.validate()

        comment.body = "x" * 500
        assert not comment.validate()
        assert comment.errors["body"] == ["Body must be between 1 and 139 characters"]
        assert "Body can't be blank" not in comment.errors["body"]

    def test_short_body_saves(self, blog):
        comment = blog.Comment.new({"body": "x" * 500})
        comment.validate()

        comment.body = "x" * 50
        assert comment.validate()
        assert comment.valid

        asyncio.run(comment.save())

        assert comment.state == SAVED
        assert blog.transport.verbs() == ["create"]

    def test_validate_single_field_only_touches_that_field(self, transport):
        User = define_model("User", ["name", "email"]).validates(
            {"name": {"presence": True}, "email": {"format": "email"}}
        )
        user = User.new(name="", email="bad")
        user.validate()

        user.name = "Ada"
        user.validate("name")

        assert "name" not in user.errors
        assert user.errors["email"] == ["Email must be a valid email"]


class TestCreate:
    def test_create_rekeys_the_identity_map(self, blog):
        post = blog.Post.new(title="Hello")
        temporary_key = post.key

        asyncio.run(post.create())

        assert post.state == SAVED
        assert post.key == post.pk == 1
        assert blog.Post.cached(1) is post
        assert temporary_key not in blog.Post.identity_map
        assert blog.transport.calls == [("create", "http://api.test/posts", {"title": "Hello"})]

    def test_server_fields_are_merged(self, blog):
        blog.transport.route("create", body={"id": 4, "title": "Hello", "slug": "hello"})
        post = asyncio.run(blog.Post.create(title="Hello"))

        assert post.slug == "hello"
        assert post.pk == 4

    def test_response_without_primary_key(self, blog):
        blog.transport.route("create", body={"title": "Hello"})
        post = blog.Post.new(title="Hello")

        with pytest.raises(TransportAPIError, match="no 'id'"):
            asyncio.run(post.create())

        assert post.state == UNSAVED
        assert blog.Post.cached(post.key) is post

    def test_create_merges_into_a_record_read_meanwhile(self, blog):
        blog.transport.route("read", body=[{"id": 7, "title": "Hello"}])
        blog.transport.route("create", body={"id": 7, "title": "Hello", "slug": "hello"})
        post = blog.Post.new(title="Hello")

        async def interleave():
            return await asyncio.gather(blog.Post.where(), post.create())

        (listed,), created = asyncio.run(interleave())

        assert created is listed
        assert blog.Post.cached(7) is listed
        assert listed.slug == "hello"
        assert len(blog.Post.identity_map) == 1

    def test_pending_link_moves_to_the_cached_instance(self, blog):
        post = blog.Post.new(title="Draft")
        comment = post.comments.new(body="first")
        blog.transport.route("read", body=[{"id": 3, "body": "first"}])
        blog.transport.route("create", "http://api.test/comments", body={"id": 3, "body": "first"})

        async def interleave():
            return await asyncio.gather(blog.Comment.where(), comment.create())

        (listed,), created = asyncio.run(interleave())
        assert created is listed
        assert list(post.comments) == [listed]

        asyncio.run(post.create())
        assert listed.post_id == post.pk

    def test_create_twice(self, blog):
        post = asyncio.run(blog.Post.create(title="x"))
        with pytest.raises(InvalidStateError):
            asyncio.run(post.create())

    def test_transport_failure_leaves_instance_unsaved(self, blog):
        blog.transport.route("create", error=TransportConnectionError("down"))
        post = blog.Post.new(title="x")

        with pytest.raises(TransportConnectionError):
            asyncio.run(post.save())

        assert post.state == UNSAVED
        assert post.pk is None

    def test_primary_key_is_frozen_once_saved(self, blog):
        post = asyncio.run(blog.Post.create(title="x"))
        with pytest.raises(InvalidStateError):
            post.id = 99

    def test_custom_primary_key(self, transport):
        Account = define_model("Account", ["name"], api="http://api.test", primary_key="uuid")
        transport.route("create", body={"uuid": "a-1", "name": "n"})

        account = asyncio.run(Account.create(name="n"))

        assert account.pk == "a-1"
        assert Account.cached("a-1") is account


class TestSaveAndUpdate:
    def test_save_on_saved_instance_updates(self, blog):
        post = asyncio.run(blog.Post.create(title="v1"))
        post.title = "v2"

        asyncio.run(post.save())

        verb, url, body = blog.transport.calls[-1]
        assert (verb, url) == ("update", "http://api.test/posts/1")
        assert body == {"id": 1, "title": "v2"}

    def test_update_remote_applies_attrs(self, blog):
        post = asyncio.run(blog.Post.create(title="v1"))

        asyncio.run(post.update_remote({"title": "v2"}))

        assert post.title == "v2"
        assert blog.transport.verbs() == ["create", "update"]

    def test_update_remote_on_unsaved_instance_creates(self, blog):
        post = blog.Post.new()

        asyncio.run(post.update_remote(title="new"))

        assert post.state == SAVED
        assert blog.transport.verbs() == ["create"]

    def test_update_remote_failure_restores_fields(self, blog):
        post = asyncio.run(blog.Post.create(title="v1"))
        blog.transport.route("update", error=TransportAPIError("boom", status_code=500))

        with pytest.raises(TransportAPIError):
            asyncio.run(post.update_remote(title="v2"))

        assert post.title == "v1"
        assert post.state == SAVED

    def test_invalid_update_keeps_the_rejected_value(self, blog):
        comment = asyncio.run(blog.Comment.create(body="ok"))

        with pytest.raises(RecordInvalidError):
            asyncio.run(comment.update_remote(body=""))

        assert comment.body == ""
        assert blog.transport.verbs() == ["create"]


class TestReads:
    def test_find_uses_the_cache(self, blog):
        blog.transport.route("read", "http://api.test/posts/1", body={"id": 1, "title": "T"})

        first = asyncio.run(blog.Post.find(1))
        second = asyncio.run(blog.Post.find(1))

        assert first is second
        assert blog.transport.verbs() == ["read"]

    def test_force_reload_merges_into_the_same_instance(self, blog):
        blog.transport.route("read", "http://api.test/posts/1", body={"id": 1, "title": "old"})
        post = asyncio.run(blog.Post.find(1))
        blog.transport.route("read", "http://api.test/posts/1", body={"id": 1, "title": "new"})

        reloaded = asyncio.run(blog.Post.find(1, force_reload=True))

        assert reloaded is post
        assert post.title == "new"

    def test_find_without_primary_key_in_body(self, blog):
        blog.transport.route("read", "http://api.test/posts/7", body={"title": "T"})
        post = asyncio.run(blog.Post.find(7))
        assert post.pk == 7

    def test_find_empty_response(self, blog):
        blog.transport.route("read", "http://api.test/posts/7", body=None, status=200)
        with pytest.raises(TransportAPIError):
            asyncio.run(blog.Post.find(7))

    def test_where_always_calls_and_deduplicates(self, blog):
        blog.transport.route(
            "read",
            "http://api.test/comments",
            body=[{"id": 1, "body": "a", "post_id": 3}, {"id": 2, "body": "b", "post_id": 3}],
        )

        first = asyncio.run(blog.Comment.where(post_id=3))
        second = asyncio.run(blog.Comment.where({"post_id": 3}))

        assert [c.pk for c in first] == [1, 2]
        assert first[0] is second[0]
        assert blog.transport.verbs() == ["read", "read"]
        assert blog.transport.calls[0][2] == {"post_id": 3}
        assert len(blog.Comment.identity_map) == 2

    def test_all_sends_no_criteria(self, blog):
        asyncio.run(blog.Post.all())
        assert blog.transport.calls == [("read", "http://api.test/posts", None)]

    def test_where_rejects_records_without_keys(self, blog):
        blog.transport.route("read", "http://api.test/posts", body=[{"title": "no id"}])
        with pytest.raises(TransportAPIError):
            asyncio.run(blog.Post.where())
        assert len(blog.Post.identity_map) == 0


class TestHooks:
    def test_order_of_hooks_validation_and_transport(self, blog):
        events = []
        blog.Comment.before("save", lambda c: events.append("before save"))
        blog.Comment.before("create", lambda c: events.append("before create"))
        blog.Comment.after("create", lambda c: events.append(f"after create {c.pk}"))
        blog.Comment.after("save", lambda c: events.append("after save"))

        asyncio.run(blog.Comment.new(body="hi").save())

        assert events == ["before save", "before create", "after create 1", "after save"]

    def test_before_hook_runs_before_validation(self, blog):
        blog.Comment.before("create", lambda c: c.update(body=c.body or "filled in"))

        comment = asyncio.run(blog.Comment.create(body=""))

        assert comment.body == "filled in"
        assert comment.state == SAVED

    def test_after_hooks_are_skipped_on_failure(self, blog):
        events = []
        blog.Comment.after("save", lambda c: events.append("after"))

        with pytest.raises(RecordInvalidError):
            asyncio.run(blog.Comment.new(body="").save())

        assert events == []

    def test_failing_before_hook_aborts(self, blog):
        def refuse(post):
            raise RuntimeError("read-only mode")

        blog.Post.before("delete", refuse)
        post = asyncio.run(blog.Post.create(title="x"))

        with pytest.raises(RuntimeError):
            asyncio.run(post.delete())

        assert post.state == SAVED
        assert blog.transport.verbs() == ["create"]

    def test_unknown_action(self, blog):
        from activeresource.core.exceptions import ModelDeclarationError

        with pytest.raises(ModelDeclarationError):
            blog.Post.before("publish", lambda p: None)


class TestDelete:
    def test_delete_saved_instance(self, blog):
        post = asyncio.run(blog.Post.create(title="x"))

        asyncio.run(post.delete())

        assert post.state == DESTROYED
        assert blog.Post.cached(1) is None
        assert blog.transport.calls[-1] == ("delete", "http://api.test/posts/1", None)

    def test_delete_unsaved_instance_is_local(self, blog):
        post = blog.Post.new()

        asyncio.run(post.delete())

        assert post.state == DESTROYED
        assert len(blog.Post.identity_map) == 0
        assert blog.transport.calls == []

    def test_delete_twice(self, blog):
        post = blog.Post.new()
        asyncio.run(post.delete())

        with pytest.raises(InvalidStateError):
            asyncio.run(post.delete())
        with pytest.raises(InvalidStateError):
            asyncio.run(post.save())

    def test_failed_delete_keeps_the_instance(self, blog):
        post = asyncio.run(blog.Post.create(title="x"))
        blog.transport.route("delete", error=TransportAPIError("nope", status_code=403))

        with pytest.raises(TransportAPIError):
            asyncio.run(post.delete())

        assert post.state == SAVED
        assert blog.Post.cached(1) is post


class TestCascade:
    def _seed(self, blog):
        post = blog.Post.materialize({"id": 1, "title": "T"})
        for key in (10, 11, 12):
            blog.Comment.materialize({"id": key, "post_id": 1, "body": "c"})
        blog.Comment.materialize({"id": 20, "post_id": 2, "body": "other post"})
        return post

    def test_dependents_are_destroyed(self, blog):
        post = self._seed(blog)

        asyncio.run(post.delete())

        assert blog.Comment.identity_map.keys() == [20]
        assert len(post.comments) == 0
        deletes = sorted(url for verb, url, _ in blog.transport.calls if verb == "delete")
        assert deletes == [
            "http://api.test/comments/10",
            "http://api.test/comments/11",
            "http://api.test/comments/12",
            "http://api.test/posts/1",
        ]

        blog.transport.route(
            "read", "http://api.test/comments/10", body={"id": 10, "post_id": 1, "body": "c"}
        )
        seen = len(blog.transport.calls)
        refetched = asyncio.run(blog.Comment.find(10))
        assert blog.transport.calls[seen:] == [("read", "http://api.test/comments/10", None)]
        assert refetched.state == SAVED

    def test_delete_after_hooks_wait_for_the_cascade(self, blog):
        post = self._seed(blog)
        remaining = []
        blog.Post.after("delete", lambda p: remaining.append(blog.Comment.identity_map.keys()))

        asyncio.run(post.delete())

        assert remaining == [[20]]

    def test_delete_after_hooks_are_skipped_on_partial_failure(self, blog):
        post = self._seed(blog)
        events = []
        blog.Post.after("delete", events.append)
        blog.transport.route(
            "delete", "http://api.test/comments/11", error=TransportConnectionError("reset")
        )

        with pytest.raises(CascadeDestroyError):
            asyncio.run(post.delete())

        assert events == []

    def test_partial_failure(self, blog):
        post = self._seed(blog)
        blog.transport.route(
            "delete",
            "http://api.test/comments/11",
            error=TransportConnectionError("reset"),
        )

        with pytest.raises(CascadeDestroyError) as exc_info:
            asyncio.run(post.delete())

        error = exc_info.value
        assert error.owner is post
        assert error.partial
        assert post.state == DESTROYED
        assert blog.Post.cached(1) is None
        assert sorted(c.pk for c in error.destroyed) == [10, 12]
        [(survivor, cause)] = error.failures
        assert survivor.pk == 11
        assert isinstance(cause, TransportConnectionError)
        assert blog.Comment.cached(11) is survivor

    def test_nested_failures_are_flattened(self, transport):
        Author = define_model("Author", api="http://api.test").has_many(
            "posts", dependent_destroy=True
        )
        Post = define_model("Post", ["author_id"], api="http://api.test").has_many(
            "comments", dependent_destroy=True
        )
        Comment = define_model("Comment", ["post_id"], api="http://api.test")
        author = Author.materialize({"id": 1})
        Post.materialize({"id": 2, "author_id": 1})
        Comment.materialize({"id": 3, "post_id": 2})
        transport.route("delete", "http://api.test/comments/3", error=TransportAPIError("x"))

        with pytest.raises(CascadeDestroyError) as exc_info:
            asyncio.run(author.delete())

        error = exc_info.value
        assert error.owner is author
        assert [p.pk for p in error.destroyed] == [2]
        assert [(c.pk, type(e)) for c, e in error.failures] == [(3, TransportAPIError)]
        assert Comment.cached(3) is not None

    def test_cycles_terminate(self, transport):
        User = define_model("User", ["profile_id"], api="http://api.test").belongs_to(
            "profile", dependent_destroy=True
        )
        Profile = define_model("Profile", ["user_id"], api="http://api.test").belongs_to(
            "user", dependent_destroy=True
        )
        user = User.materialize({"id": 1, "profile_id": 5})
        Profile.materialize({"id": 5, "user_id": 1})

        asyncio.run(user.delete())

        assert len(User.identity_map) == 0
        assert len(Profile.identity_map) == 0
        assert transport.verbs() == ["delete", "delete"]

    def test_unsaved_dependents_are_removed_locally(self, blog):
        post = asyncio.run(blog.Post.create(title="x"))
        post.comments.new(body="draft")

        asyncio.run(post.delete())

        assert len(blog.Comment.identity_map) == 0
        assert blog.transport.verbs() == ["create", "delete"]

    def test_deleting_an_unsaved_owner_releases_its_children(self, transport):
        Post = define_model("Post", api="http://api.test").has_many("comments")
        Comment = define_model("Comment", ["post_id"], api="http://api.test").belongs_to("post")
        post = Post.new()
        comment = post.comments.new()

        asyncio.run(post.delete())

        assert comment.post is None
        assert comment.post_id is None
        assert comment.state == UNSAVED
        assert Comment.cached(comment.key) is comment
        assert transport.calls == []

    def test_non_dependent_associations_are_left_alone(self, blog):
        comment = blog.Comment.materialize({"id": 1, "post_id": 1, "body": "c"})
        post = blog.Post.materialize({"id": 1})

        asyncio.run(comment.delete())

        assert blog.Post.cached(1) is post
