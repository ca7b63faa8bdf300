import pytest
from fastapi import HTTPException

from utils.auth_utils import get_user_identifier, require_group


def test_identifier_prefers_cognito_username():
    assert get_user_identifier({"cognito:username": "site.admin", "email": "a@example.com", "sub": "abc"}) == "site.admin"
    assert get_user_identifier({"email": "a@example.com", "sub": "abc"}) == "a@example.com"
    assert get_user_identifier({"sub": "abc"}) == "abc"


def test_require_group_accepts_member():
    checker = require_group(["admin"])
    claims = {"cognito:username": "site.admin", "cognito:groups": ["store", "admin"]}
    assert checker(user=claims) is claims


@pytest.mark.parametrize("groups", [None, [], ["store"]])
def test_require_group_rejects_others(groups):
    checker = require_group(["admin"])
    with pytest.raises(HTTPException) as exc_info:
        checker(user={"cognito:username": "storekeeper", "cognito:groups": groups})
    assert exc_info.value.status_code == 403
