import pytest

from tradedesk.errors import NotFoundError, PreconditionError, ValidationError
from tradedesk.models import AppView, RetailerRole, User, UserRole
from tradedesk.services.access import (
    add_team_member,
    can_view,
    effective_retailer_role,
    grant_access,
    login,
    nav_label,
    remove_team_member,
    revoke_access,
    signup,
    sso_login,
    team_members,
    visible_views,
)


def _store_user(role):
    return User("u-x", "x@store.in", "X", UserRole.RETAILER, "r1", role)


def test_login_known_user(state):
    user = login(state, " Admin@Reto.ai ", "anything")
    assert user.id == "u1"


@pytest.mark.parametrize("email,password", [("nobody@x.com", "pw"), ("admin@reto.ai", "")])
def test_login_rejected(state, email, password):
    with pytest.raises(ValidationError, match="Invalid credentials"):
        login(state, email, password)


def test_signup_requires_allow_list(state, now):
    with pytest.raises(ValidationError, match="not whitelisted"):
        signup(state, "Eve", "eve@x.com", "pw")

    grant_access(state, "priya@store.in", UserRole.RETAILER, "r3", now=now)
    user = signup(state, "Priya", "priya@store.in", "pw")
    assert user.role == UserRole.RETAILER
    assert user.retailer_id == "r3"
    assert user.retailer_role == RetailerRole.OWNER
    assert user.id.startswith("u-")

    with pytest.raises(ValidationError, match="already exists"):
        signup(state, "Priya", "priya@store.in", "pw")


def test_sso_login(state, now):
    assert sso_login(state, "ravi@ravi.com").id == "u2"

    add_team_member(state, "r1", "kiran@ravi.com", RetailerRole.SALES_REP, now=now)
    user = sso_login(state, "kiran@ravi.com")
    assert user.name == "kiran"
    assert user.retailer_role == RetailerRole.SALES_REP

    with pytest.raises(ValidationError, match="not authorized"):
        sso_login(state, "stranger@gmail.com")


def test_grant_access_validation(state):
    with pytest.raises(ValidationError, match="Email is required"):
        grant_access(state, "  ", UserRole.ADMIN)
    with pytest.raises(ValidationError, match="Retailer ID"):
        grant_access(state, "a@b.com", UserRole.RETAILER)
    with pytest.raises(ValidationError, match="already in Allowed List"):
        grant_access(state, "ADMIN@reto.ai", UserRole.ADMIN)

    admin = grant_access(state, "ops@reto.ai", UserRole.ADMIN, "r1")
    assert admin.retailer_id is None and admin.retailer_role is None


def test_team_management(state, now):
    add_team_member(state, "r1", "acc@ravi.com", RetailerRole.ACCOUNTANT, now=now)
    assert {m.email for m in team_members(state, "r1")} == {"ravi@ravi.com", "acc@ravi.com"}

    with pytest.raises(ValidationError, match="already exists"):
        add_team_member(state, "r1", "acc@ravi.com", RetailerRole.SALES_REP)
    with pytest.raises(PreconditionError):
        remove_team_member(state, "r1", "ravi@ravi.com")
    with pytest.raises(NotFoundError):
        remove_team_member(state, "r2", "acc@ravi.com")

    remove_team_member(state, "r1", "acc@ravi.com", acting_email="ravi@ravi.com")
    assert state.allowed_user("acc@ravi.com") is None


def test_revoke_access(state):
    with pytest.raises(PreconditionError):
        revoke_access(state, "admin@reto.ai", acting_email="Admin@reto.ai")
    revoke_access(state, "ravi@ravi.com", acting_email="admin@reto.ai")
    with pytest.raises(NotFoundError):
        revoke_access(state, "ravi@ravi.com")


def test_admin_navigation(state):
    admin = state.user_by_email("admin@reto.ai")
    views = visible_views(admin)
    assert AppView.USER_MANAGEMENT in views
    assert AppView.SALES not in views
    assert AppView.RETAILER_UAM not in views
    assert nav_label(admin, AppView.PURCHASE_ORDERS) == "Purchase Orders"


def test_owner_navigation(state):
    owner = state.user_by_email("ravi@ravi.com")
    views = visible_views(owner)
    assert AppView.USER_MANAGEMENT not in views
    assert {AppView.SALES, AppView.RETAILER_UAM, AppView.MANAGE_RETAILERS, AppView.SETTINGS} <= set(views)
    assert nav_label(owner, AppView.PURCHASE_ORDERS) == "My Orders"


def test_sales_rep_navigation():
    assert visible_views(_store_user(RetailerRole.SALES_REP)) == [
        AppView.DASHBOARD,
        AppView.INVENTORY,
        AppView.NLC_UPLOAD,
        AppView.SALES,
        AppView.AI_INSIGHTS,
    ]


def test_accountant_navigation():
    accountant = _store_user(RetailerRole.ACCOUNTANT)
    assert can_view(accountant, AppView.PURCHASE_ORDERS)
    assert can_view(accountant, AppView.SETTINGS)
    assert not can_view(accountant, AppView.MANAGE_RETAILERS)
    assert not can_view(accountant, AppView.RETAILER_UAM)


def test_missing_store_role_acts_as_owner():
    user = _store_user(None)
    assert effective_retailer_role(user) == RetailerRole.OWNER
    assert can_view(user, AppView.RETAILER_UAM)
    assert not can_view(user, AppView.LOGIN)


def test_team_member_cannot_be_a_second_owner(state, now):
    with pytest.raises(ValidationError, match="one owner"):
        add_team_member(state, "r1", "partner@ravi.com", RetailerRole.OWNER, now=now)
    assert state.allowed_user("partner@ravi.com") is None
