# tests/fixtures/models.py
"""Record types used across the test suite.

- Person: plain record, target of Widget.owner
- Tag: target of the Widget.tags many-to-many relation
- Widget: every attribute type, auto timestamps, belongs-to and many-to-many
- Comment: polymorphic belongs-to (commentable_type / commentable_id)
- Label: string primary key, no timestamps
"""

from strata.contracts import (
    Attribute,
    AttributeType,
    BelongsTo,
    EntitySchema,
    ManyToMany,
    PolymorphicBelongsTo,
    TimestampRole,
)
from strata.versioning import Record


class Person(Record):
    schema = EntitySchema(
        "Person",
        attributes=[
            Attribute("id", AttributeType.INTEGER),
            Attribute("name", AttributeType.STRING),
        ],
    )


class Tag(Record):
    schema = EntitySchema(
        "Tag",
        attributes=[
            Attribute("id", AttributeType.INTEGER),
            Attribute("label", AttributeType.STRING),
        ],
    )


class Widget(Record):
    schema = EntitySchema(
        "Widget",
        attributes=[
            Attribute("id", AttributeType.INTEGER),
            Attribute("name", AttributeType.STRING),
            Attribute("color", AttributeType.STRING),
            Attribute("notes", AttributeType.TEXT),
            Attribute("quantity", AttributeType.INTEGER),
            Attribute("weight", AttributeType.FLOAT),
            Attribute("price", AttributeType.DECIMAL),
            Attribute("active", AttributeType.BOOLEAN),
            Attribute("released_on", AttributeType.DATE),
            Attribute("specs", AttributeType.JSON),
            Attribute("secret", AttributeType.STRING),
            Attribute("owner_id", AttributeType.INTEGER),
            Attribute("created_at", AttributeType.DATETIME, auto=TimestampRole.CREATE),
            Attribute("updated_at", AttributeType.DATETIME, auto=TimestampRole.UPDATE),
        ],
        relations=[
            BelongsTo("owner", foreign_key="owner_id", target="Person"),
            ManyToMany("tags", target="Tag"),
        ],
    )

    def display_name(self) -> str:
        return f"widget:{self.name}"


class Comment(Record):
    schema = EntitySchema(
        "Comment",
        attributes=[
            Attribute("id", AttributeType.INTEGER),
            Attribute("body", AttributeType.TEXT),
            Attribute("commentable_id", AttributeType.INTEGER),
            Attribute("commentable_type", AttributeType.STRING),
        ],
        relations=[PolymorphicBelongsTo("commentable", foreign_key="commentable_id", foreign_type="commentable_type")],
    )


class Label(Record):
    schema = EntitySchema(
        "Label",
        attributes=[
            Attribute("code", AttributeType.STRING),
            Attribute("title", AttributeType.STRING),
        ],
        primary_key="code",
    )
