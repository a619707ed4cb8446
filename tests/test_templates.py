import pytest

from errors import StorageFailure, TemplateNameEmpty
from gateway import TEMPLATES_KEY, PersistenceGateway
from schemas import Form, FormField, Step
from templates import TemplateStore, slugify


def _fields():
    return [
        FormField(id="1", type="text", label="Name", required=True),
        FormField(id="2", type="checkbox", label="Topics", options=["a", "b"]),
    ]


def test_slugify():
    assert slugify("My Form") == "my_form"
    assert slugify("Big   Event\tSignup") == "big_event_signup"


def test_builtins_available(gateway):
    store = TemplateStore(gateway)
    assert set(store.list()) == {"contact", "survey"}
    assert store.load("survey").fields[1].options == ["Excellent", "Good", "Fair", "Poor"]


def test_save_then_load_round_trip(gateway):
    fields = _fields()
    key = TemplateStore(gateway).save("My Form", fields)
    assert key == "my_form"
    template = TemplateStore(gateway).load_all()[key]
    assert template.name == "My Form"
    assert template.fields == fields


def test_saved_fields_are_copied(gateway):
    fields = _fields()
    store = TemplateStore(gateway)
    store.save("Copy", fields)
    fields[0].label = "Changed"
    assert store.load("copy").fields[0].label == "Name"


def test_collision_overwrites(gateway, store):
    templates = TemplateStore(gateway)
    templates.save("My Form", _fields())
    templates.save("my   form", _fields()[:1])
    assert len(templates.load("my_form").fields) == 1
    assert templates.load("my_form").name == "my   form"
    assert list(store.get(TEMPLATES_KEY)) == ["my_form"]


def test_save_keeps_other_templates(gateway):
    TemplateStore(gateway).save("One", _fields())
    TemplateStore(gateway).save("Two", _fields())
    assert {"one", "two"} <= set(TemplateStore(gateway).load_all())


@pytest.mark.parametrize("name", ["", "   "])
def test_empty_name(gateway, name):
    with pytest.raises(TemplateNameEmpty):
        TemplateStore(gateway).save(name, _fields())


def test_failed_save_not_registered(failing_store):
    templates = TemplateStore(PersistenceGateway(failing_store, "http://x"))
    with pytest.raises(StorageFailure):
        templates.save("Lost", _fields())
    assert templates.load("lost") is None


def test_load_missing(gateway):
    assert TemplateStore(gateway).load("nope") is None


def test_apply_keeps_id_and_settings(gateway):
    form = Form(
        id="draft-1",
        title="Old",
        description="Keep me",
        fields=[FormField(id="9", type="text", label="Old field")],
        steps=[Step(id="s1", name="Step 1", fields={"9"})],
        theme="dark",
    )
    seeded = TemplateStore(gateway).apply(form, "contact")
    assert seeded.id == "draft-1"
    assert seeded.title == "Contact Us"
    assert seeded.description == "Keep me"
    assert seeded.model_dump()["theme"] == "dark"
    assert [f.label for f in seeded.fields] == ["Full Name", "Email", "Phone", "Message"]
    assert seeded.steps[0].fields == set()
