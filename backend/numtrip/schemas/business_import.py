from marshmallow import Schema, fields, validate, EXCLUDE

from ..modules.imports.service import IMPORT_CATEGORIES


class ImportBusinessesSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    city = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    category = fields.Str(required=True, validate=validate.OneOf(IMPORT_CATEGORIES))
    limit = fields.Int(load_default=100, validate=validate.Range(min=1, max=1000))
    skip_duplicates = fields.Bool(load_default=False, data_key="skipDuplicates")
    run_async = fields.Bool(load_default=False, data_key="async")
