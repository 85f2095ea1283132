import uuid

from usersettings.models.setting import SettingIdentity, UserSetting
from usersettings.predicate import MATCH_ALL, AllOf, AnyOf, Eq, build_query, name_or_guid

GUID = uuid.UUID("6f1c9d52-2f0e-4a8e-9d55-3b9f8f1f0a11")


def test_name_only_fragment():
    assert name_or_guid("alice", "user_name", None, "user_guid") == Eq("user_name", "alice")


def test_guid_only_fragment():
    assert name_or_guid(None, "user_name", GUID, "user_guid") == Eq("user_guid", GUID)


def test_name_and_guid_fragment_is_or():
    fragment = name_or_guid("alice", "user_name", GUID, "user_guid")
    assert fragment == AnyOf((Eq("user_name", "alice"), Eq("user_guid", GUID)))


def test_empty_name_counts_as_absent():
    assert name_or_guid("", "user_name", None, "user_guid") is None


def test_full_identity_is_and_of_three_dimensions():
    query = build_query(SettingIdentity.of("alice", "grid", "width"))
    assert query.predicate == AllOf(
        (Eq("user_name", "alice"), Eq("module_name", "grid"), Eq("setting_name", "width"))
    )
    assert query.columns == ("user_name", "module_name", "setting_name")


def test_unconstrained_dimension_is_omitted():
    query = build_query(SettingIdentity(module_name="grid", setting_guid=GUID))
    assert query.predicate == AllOf((Eq("module_name", "grid"), Eq("setting_guid", GUID)))
    assert query.columns == ("module_name", "setting_guid")


def test_single_dimension_is_not_wrapped():
    query = build_query(SettingIdentity(user_name="alice", user_guid=GUID))
    assert isinstance(query.predicate, AnyOf)
    assert query.columns == ("user_name", "user_guid")


def test_no_dimension_matches_all():
    query = build_query(SettingIdentity())
    assert query.predicate == MATCH_ALL
    assert query.predicate.matches(UserSetting())
    assert query.predicate.to_sql() == ("1 = 1", [])
    assert query.columns == ()


def test_sql_rendering_nests_or_inside_and():
    query = build_query(SettingIdentity("alice", GUID, "grid", None, "width", None))
    clause, params = query.predicate.to_sql()
    assert clause == "(user_name = ? OR user_guid = ?) AND module_name = ? AND setting_name = ?"
    assert params == ["alice", str(GUID), "grid", "width"]


def test_matches_by_either_name_or_guid():
    predicate = build_query(SettingIdentity("alice", GUID, "grid", None, "width", None)).predicate
    by_guid = UserSetting(user_guid=GUID, module_name="grid", setting_name="width")
    by_name = UserSetting(user_name="alice", module_name="grid", setting_name="width")
    other = UserSetting(user_name="bob", module_name="grid", setting_name="width")
    assert predicate.matches(by_guid)
    assert predicate.matches(by_name)
    assert not predicate.matches(other)
