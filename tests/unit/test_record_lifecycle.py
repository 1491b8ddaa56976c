from __future__ import annotations

from decimal import Decimal
from typing import Any, List

import pytest

from dbrecord.domain.errors import ConfigurationError, ErrorList, RecordStateError
from dbrecord.domain.record import Record, is_new_pk
from dbrecord.domain.schema import FieldDef, TableSchema
from tests.fakes import (
    Country,
    Customer,
    FakeLogin,
    HookedCountry,
    Order,
    RecordingDialect,
    StrictCountry,
)

FIRST_PK = 100
CUSTOMER_PK = 5
CUSTOMER_FIELD_COUNT = 7


def _seed_customer(dialect: RecordingDialect, **overrides: Any) -> None:
    values = {
        "name": "Ann Lee",
        "email": "ann@example.com",
        "notes": "",
        "country_id": None,
        "tier": "A",
        "active": 1,
        "signup_code": "SPRING",
    }
    values.update(overrides)
    dialect.seed("customer", CUSTOMER_PK, **values)


@pytest.mark.parametrize(
    "pk",
    [None, "", "   ", -1, -3, "-3", "-2.5", "-.5", "-7.", -0.5, Decimal("-1"), "-0", -0.0, Decimal("-0")],
)
def test_new_shaped_keys(pk: Any) -> None:
    assert is_new_pk(pk)


@pytest.mark.parametrize("pk", [0, 0.0, Decimal("0"), 1, "1", "abc", "0", 2.5, "-abc", "--1", "3-"])
def test_existing_shaped_keys(pk: Any) -> None:
    assert not is_new_pk(pk)


class TestNewRecord:
    def test_every_field_is_dirty(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        customer = Customer(login)

        assert customer.is_new
        assert sorted(customer.changed()) == sorted(Customer.schema.field_names())
        assert len(customer.changed()) == CUSTOMER_FIELD_COUNT
        assert customer.still_valid() is False

    def test_defaults_go_through_interface(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        customer = Customer(login)
        assert customer["active"].value == 1
        assert customer["name"].value == ""

    def test_negative_key_means_new(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        assert Customer(login, "-1").pk is None

    def test_insert_sends_exactly_the_set_field(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        country = Country(login)
        country["name"] = " Norway "

        assert country.save()

        assert dialect.calls_named("insert") == [("insert", "country", ["name"], ["Norway"])]
        assert country.pk == FIRST_PK
        assert country.is_new is False
        assert country.fields.owner.pk == FIRST_PK
        assert country.changed() == []
        assert country.still_valid() is True

    def test_invalid_new_record_is_not_inserted(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        country = Country(login)

        assert country.save() is False
        assert dialect.calls == []
        assert country.errors.render() == ["Country name is a required field"]
        assert country.changed() == ["name"]

    def test_fields_not_stored_in_db_are_skipped(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        dialect.seed("customer", "1", name="Ann")
        order = Order(login)
        order["customer_id"] = "1"
        order["summary"] = "calculated"

        assert order.save()
        [(_, table, names, values)] = dialect.calls_named("insert")
        assert table == "orders"
        assert names == ["customer_id", "status", "total"]
        assert values == ["1", "new", ""]

    def test_insert_failure_is_accumulated(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        dialect.fail_on.add("insert")
        country = Country(login)
        country["name"] = "Chile"

        assert country.save() is False
        assert country.errors.render() == ["Database error: insert failed"]
        assert country.is_new
        assert country.changed() == ["name"]

    def test_insert_without_key(self, dialect: RecordingDialect, login: FakeLogin, monkeypatch) -> None:
        monkeypatch.setattr(dialect, "insert", lambda *args: None)
        country = Country(login)
        country["name"] = "Chile"

        assert country.save() is False
        assert country.is_new
        assert len(country.errors) == 1


class TestExistingRecord:
    def test_loaded_record_is_clean(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        _seed_customer(dialect)
        customer = Customer.load(login, CUSTOMER_PK)

        assert customer is not None
        assert customer.changed() == []
        assert customer["name"].value == "Ann Lee"

    def test_save_without_changes_dispatches_nothing(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        _seed_customer(dialect)
        customer = Customer.load(login, CUSTOMER_PK)
        dialect.calls.clear()

        assert customer.save()
        assert dialect.calls == []

    def test_update_sends_changed_fields_only(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        _seed_customer(dialect)
        customer = Customer.load(login, CUSTOMER_PK)
        customer["email"] = "  ANN@Example.org "

        assert customer.save()
        assert dialect.calls_named("update") == [
            ("update", "customer", CUSTOMER_PK, ["email"], ["ann@example.org"])
        ]
        assert customer.changed() == []
        assert customer.still_valid()

    def test_invalid_change_blocks_update(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        _seed_customer(dialect)
        customer = Customer.load(login, CUSTOMER_PK)
        customer["tier"] = "Z"

        assert customer.save() is False
        assert dialect.calls_named("update") == []
        assert customer.errors
        assert customer.changed() == ["tier"]

    def test_write_once_fields_are_not_updated(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        _seed_customer(dialect)
        customer = Customer.load(login, CUSTOMER_PK)
        customer["signup_code"] = "autumn"
        customer["email"] = "new@example.com"

        assert customer.save()
        [(_, _, _, names, _)] = dialect.calls_named("update")
        assert names == ["email"]

    def test_only_write_once_changes_is_a_no_op(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        _seed_customer(dialect)
        customer = Customer.load(login, CUSTOMER_PK)
        customer["signup_code"] = "autumn"

        assert customer.save()
        assert dialect.calls_named("update") == []

    def test_update_failure_is_accumulated(
        self, dialect: RecordingDialect, login: FakeLogin
    ) -> None:
        _seed_customer(dialect)
        dialect.fail_on.add("update")
        customer = Customer.load(login, CUSTOMER_PK)
        customer["email"] = "x@example.com"

        assert customer.save() is False
        assert customer.errors.render() == ["Database error: update failed"]
        assert customer.changed() == ["email"]

    def test_pk_cannot_be_reassigned(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        _seed_customer(dialect)
        customer = Customer.load(login, CUSTOMER_PK)
        with pytest.raises(RecordStateError):
            customer.pk = 99

    def test_missing_row(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        errors = ErrorList()
        assert Customer.load(login, 404, errors=errors) is None
        assert errors.render() == ["no such record found"]


class TestValidation:
    def test_validate_clears_previous_errors(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        country = Country(login)
        country.errors.add(text="stale")
        country["name"] = "Peru"

        assert country.validate()
        assert not country.errors

    def test_validated_record_skips_revalidation(
        self, dialect: RecordingDialect, login: FakeLogin, monkeypatch
    ) -> None:
        monkeypatch.setattr(StrictCountry, "rl_calls", 0)
        country = StrictCountry(login)
        country["name"] = "Peru"

        assert country.validate()
        assert country.validate()
        assert StrictCountry.rl_calls == 1

        country["name"] = "Xanadu"
        assert country.validate() is False
        assert country.errors.render() == ["Names may not start with X"]

    def test_record_level_skipped_after_field_failure(
        self, dialect: RecordingDialect, login: FakeLogin, monkeypatch
    ) -> None:
        monkeypatch.setattr(StrictCountry, "rl_calls", 0)
        country = StrictCountry(login)

        assert country.validate() is False
        assert StrictCountry.rl_calls == 0

    def test_always_record_level_validate(
        self, dialect: RecordingDialect, login: FakeLogin, monkeypatch
    ) -> None:
        monkeypatch.setattr(StrictCountry, "rl_calls", 0)
        monkeypatch.setattr(StrictCountry, "always_record_level_validate", True)
        country = StrictCountry(login)

        assert country.validate() is False
        assert StrictCountry.rl_calls == 1


class TestHooks:
    def test_insert_hooks_run_in_order(self, dialect: RecordingDialect, login: FakeLogin, monkeypatch) -> None:
        monkeypatch.setattr(HookedCountry, "veto", set())
        country = HookedCountry(login)
        country["name"] = "Fiji"

        assert country.save()
        assert country.hook_calls == ["before_insert", "after_insert"]

    def test_before_insert_veto(self, dialect: RecordingDialect, login: FakeLogin, monkeypatch) -> None:
        monkeypatch.setattr(HookedCountry, "veto", {"before_insert"})
        country = HookedCountry(login)
        country["name"] = "Fiji"

        assert country.save() is False
        assert dialect.calls_named("insert") == []
        assert country.changed() == ["name"]
        assert country.is_new

    def test_update_hooks(self, dialect: RecordingDialect, login: FakeLogin, monkeypatch) -> None:
        monkeypatch.setattr(HookedCountry, "veto", {"before_update"})
        dialect.seed("country", 1, name="Fiji")
        country = HookedCountry.load(login, 1)
        country["name"] = "Tonga"

        assert country.save() is False
        assert country.hook_calls == ["before_update"]
        assert dialect.calls_named("update") == []

    def test_after_insert_result_does_not_fail_the_save(
        self, dialect: RecordingDialect, login: FakeLogin, monkeypatch
    ) -> None:
        monkeypatch.setattr(HookedCountry, "veto", {"after_insert"})
        country = HookedCountry(login)
        country["name"] = "Fiji"

        assert country.save() is True
        assert country.pk == FIRST_PK
        assert country.hook_calls == ["before_insert", "after_insert"]
        assert country.changed() == []
        assert not country.errors

    def test_after_update_result_does_not_fail_the_save(
        self, dialect: RecordingDialect, login: FakeLogin, monkeypatch
    ) -> None:
        monkeypatch.setattr(HookedCountry, "veto", {"after_update"})
        dialect.seed("country", 1, name="Fiji")
        country = HookedCountry.load(login, 1)
        country["name"] = "Tonga"

        assert country.save() is True
        assert country.hook_calls == ["before_update", "after_update"]
        assert dialect.calls_named("update") == [("update", "country", 1, ["name"], ["Tonga"])]
        assert not country.errors

    def test_delete_hooks(self, dialect: RecordingDialect, login: FakeLogin, monkeypatch) -> None:
        monkeypatch.setattr(HookedCountry, "veto", set())
        dialect.seed("country", 1, name="Fiji")
        country = HookedCountry.load(login, 1)

        assert country.delete()
        assert country.hook_calls == ["before_delete", "after_delete"]
        assert dialect.calls_named("record_delete") == [("record_delete", "country", 1)]


class TestDeleteAndExists:
    def test_delete_new_record(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        country = Country(login)
        assert country.delete() is False
        assert country.errors.render() == ["Cannot delete record that has not been saved yet"]
        assert dialect.calls == []

    def test_delete_failure(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        dialect.seed("country", 1, name="Fiji")
        dialect.fail_on.add("record_delete")
        country = Country(login, 1)

        assert country.delete() is False
        assert country.errors.render() == ["Database error: record_delete failed"]

    def test_exists(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        dialect.seed("country", 1, name="Fiji")

        assert Country(login, 1).exists()
        assert not Country(login, 2).exists()
        assert Country.key_exists(login, 1)

    def test_new_keys_never_hit_storage(self, dialect: RecordingDialect, login: FakeLogin) -> None:
        assert Country(login).exists() is False
        assert Country.key_exists(login, "-4") is False
        assert dialect.calls == []


class TestDeclaration:
    def test_missing_schema(self) -> None:
        class NoSchema(Record):
            dialect = RecordingDialect()

        with pytest.raises(ConfigurationError):
            NoSchema(FakeLogin())

    def test_missing_dialect(self) -> None:
        class NoDialect(Record):
            schema = TableSchema(name="t", fields={"a": FieldDef()})

        with pytest.raises(ConfigurationError):
            NoDialect(FakeLogin())

    def test_bad_login(self, dialect: RecordingDialect) -> None:
        country = Country(object(), 1)
        with pytest.raises(ConfigurationError):
            country.get_connection()

    def test_raw_connection_is_used_directly(self, dialect: RecordingDialect) -> None:
        class _Connection:
            def cursor(self) -> List[Any]:
                return []

        connection = _Connection()
        assert Country(connection, 1).get_connection() is connection
