import httpx
import pytest
import respx
from converge.core.errors import InvalidPropsError, ReconciliationError
from converge.example_platform import USER_RESOURCE_TYPE, User, UserResource, configure_api
from converge.resources import Scope, default_registry, destroy
from httpx import Response

ORG_ID = "org-1"


def test_user_resource_is_registered():
    assert default_registry.get(USER_RESOURCE_TYPE) is UserResource


@pytest.mark.asyncio
async def test_create_update_delete_user(platform, platform_api):
    scope = Scope("test-user")
    user = None
    try:
        async with scope:
            user = await UserResource(
                "u1",
                {
                    "orgId": ORG_ID,
                    "firstName": "A",
                    "lastName": "B",
                    "funFact": "I am a test user",
                },
            )

            assert isinstance(user, User)
            assert user.id
            assert user.first_name == "A"
            assert user.fun_fact == "I am a test user"

            response = await platform_api.get_user(ORG_ID, user.id)
            assert response.status_code == 200
            assert response.json()["firstName"] == "A"

            updated = await UserResource(
                "u1",
                {"orgId": ORG_ID, "firstName": "C", "lastName": "B"},
            )

            assert updated.id == user.id
            assert updated.first_name == "C"
            assert updated.created_at == user.created_at

            response = await platform_api.get_user(ORG_ID, user.id)
            data = response.json()
            assert data["firstName"] == "C"
            # Unset optional fields are forwarded, so the fun fact is cleared.
            assert data["funFact"] is None
    finally:
        result = await destroy(scope)

    assert result.success
    assert result.visited == ["u1"]
    response = await platform_api.get_user(ORG_ID, user.id)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_identical_props_do_not_call_api(platform):
    props = {"orgId": ORG_ID, "firstName": "A", "lastName": "B"}
    async with Scope("idempotent") as scope:
        first = await UserResource("u1", props)
        second = await UserResource("u1", dict(props))

    assert first == second
    assert [r[0] for r in platform["requests"]] == ["POST"]
    await scope.destroy()


@pytest.mark.asyncio
async def test_snake_case_props_are_accepted(platform):
    async with Scope("snake") as scope:
        user = await UserResource("u1", {"org_id": ORG_ID, "first_name": "A", "last_name": "B"})
    assert user.org_id == ORG_ID
    assert scope.get("u1").props == {"orgId": ORG_ID, "firstName": "A", "lastName": "B", "funFact": None}
    await scope.destroy()


@pytest.mark.asyncio
async def test_missing_required_props(platform):
    async with Scope("invalid") as scope:
        with pytest.raises(InvalidPropsError):
            await UserResource("u1", {"orgId": ORG_ID, "firstName": "A"})
    assert len(scope) == 0
    assert platform["requests"] == []


@pytest.mark.asyncio
async def test_delete_failure_does_not_block_teardown(platform, platform_api):
    async with Scope("multi") as scope:
        users = [
            await UserResource(name, {"orgId": ORG_ID, "firstName": name, "lastName": "X"})
            for name in ("u1", "u2", "u3")
        ]
    platform["fail_delete"].add(users[1].id)

    result = await scope.destroy()

    assert result.visited == ["u3", "u2", "u1"]
    assert [f.logical_id for f in result.failures] == ["u2"]
    assert "500" in result.failures[0].error_message
    assert scope.destroyed and len(scope) == 0
    assert (await platform_api.get_user(ORG_ID, users[0].id)).status_code == 404
    assert (await platform_api.get_user(ORG_ID, users[2].id)).status_code == 404
    # The failed delete leaves the remote user behind.
    assert (await platform_api.get_user(ORG_ID, users[1].id)).status_code == 200


@pytest.mark.asyncio
async def test_delete_of_already_removed_user_succeeds(platform, platform_api):
    async with Scope("gone") as scope:
        user = await UserResource("u1", {"orgId": ORG_ID, "firstName": "A", "lastName": "B"})
    await platform_api.delete_user(ORG_ID, user.id)

    result = await scope.destroy()

    assert result.success
    assert platform["requests"][-1] == ("DELETE", ORG_ID, user.id)


@pytest.mark.asyncio
async def test_api_error_on_create_propagates():
    configure_api(api_url="https://platform.example.com/api", max_retries=1)
    try:
        with respx.mock:
            respx.post("https://platform.example.com/api/org/org-1/users").mock(
                return_value=Response(503)
            )
            async with Scope("broken") as scope:
                with pytest.raises(ReconciliationError) as exc_info:
                    await UserResource("u1", {"orgId": ORG_ID, "firstName": "A", "lastName": "B"})
    finally:
        configure_api()

    assert exc_info.value.details["status"] == 503
    assert "u1" not in scope


@pytest.mark.asyncio
async def test_network_error_on_delete_is_reported():
    configure_api(api_url="https://platform.example.com/api", max_retries=1)
    try:
        with respx.mock:
            respx.post("https://platform.example.com/api/org/org-1/users").mock(
                return_value=Response(200, json={"id": "abc", "firstName": "A", "lastName": "B"})
            )
            respx.delete("https://platform.example.com/api/org/org-1/user/abc").mock(
                side_effect=httpx.ConnectError
            )
            async with Scope("offline") as scope:
                await UserResource("u1", {"orgId": ORG_ID, "firstName": "A", "lastName": "B"})

            result = await scope.destroy()
    finally:
        configure_api()

    assert not result.success
    assert result.visited == ["u1"]
    assert len(scope) == 0
