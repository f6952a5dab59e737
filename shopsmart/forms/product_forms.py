"""
Product forms for the admin API.

The admin API speaks JSON, so payloads are converted into form data before
validation; WTForms does the type coercion and the field rules.
"""
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import BooleanField, DecimalField, IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional, ValidationError

from shopsmart.exceptions import BusinessLogicError


class ProductForm(FlaskForm):
    """Create/update payload of a product."""

    class Meta:
        # Bearer-token API: no CSRF cookie to check
        csrf = False

    name = StringField(
        'Name',
        validators=[
            DataRequired(message='Name is required'),
            Length(max=200, message='Name must be at most 200 characters')
        ]
    )

    description = TextAreaField('Description', validators=[Optional()])

    price = DecimalField(
        'Price',
        validators=[InputRequired(message='Price is required')],
        places=2
    )

    is_on_sale = BooleanField('On sale', default=False)

    # Checked by validate_sale_price only: required while the product is on sale
    sale_price = DecimalField('Sale price', places=2)

    on_sale_quantity = IntegerField(
        'On-sale quantity',
        validators=[Optional(), NumberRange(min=0, message='On-sale quantity cannot be negative')],
        default=0
    )

    regular_inventory = IntegerField(
        'Regular inventory',
        validators=[Optional(), NumberRange(min=0, message='Regular inventory cannot be negative')],
        default=0
    )

    low_stock_threshold = IntegerField(
        'Low stock threshold',
        validators=[Optional(), NumberRange(min=0, message='Low stock threshold cannot be negative')]
    )

    image = StringField('Image', validators=[Optional(), Length(max=255)])

    # API field -> form field
    API_FIELDS = {
        'name': 'name',
        'description': 'description',
        'price': 'price',
        'isOnSale': 'is_on_sale',
        'salePrice': 'sale_price',
        'onSaleQuantity': 'on_sale_quantity',
        'regularInventory': 'regular_inventory',
        'lowStockThreshold': 'low_stock_threshold',
        'image': 'image',
    }

    def validate_price(self, field):
        if field.data is not None and field.data <= 0:
            raise ValidationError('Price must be greater than 0')

    def validate_sale_price(self, field):
        if not self.is_on_sale.data:
            return
        if field.data is None:
            raise ValidationError('Sale price is required when the product is on sale')
        if field.data <= 0:
            raise ValidationError('Sale price must be greater than 0')

    @classmethod
    def from_payload(cls, payload, product=None):
        """
        Build a form from a JSON payload.

        With `product`, fields missing from the payload keep the product's
        current values, so partial updates validate against the full record.
        """
        if payload is not None and not isinstance(payload, dict):
            raise BusinessLogicError('Request body must be a JSON object')
        values = {}
        if product is not None:
            values.update(product.to_dict())
        values.update({k: v for k, v in (payload or {}).items() if k in cls.API_FIELDS})

        formdata = MultiDict()
        for api_field, form_field in cls.API_FIELDS.items():
            value = values.get(api_field)
            if value is None:
                continue
            if isinstance(value, bool):
                value = 'true' if value else 'false'
            formdata[form_field] = str(value)

        return cls(formdata=formdata)

    def validated_data(self):
        """
        API-keyed dict of coerced values.

        Raises:
            BusinessLogicError: With the per-field messages in 'errors'
        """
        if not self.validate():
            raise BusinessLogicError('Validation failed', payload={'errors': self.errors})

        data = {}
        for api_field, form_field in self.API_FIELDS.items():
            data[api_field] = self[form_field].data
        data['name'] = data['name'].strip()
        data['description'] = data['description'] or None
        data['image'] = data['image'] or None
        if data['onSaleQuantity'] is None:
            data['onSaleQuantity'] = 0
        if data['regularInventory'] is None:
            data['regularInventory'] = 0
        return data
