"""Geographic reference data: countries, provinces/states, cities, addresses.

The ORM classes own the schema (create_all / migrations). Read paths in
routes/geo.py query these tables with plain SQL.
"""

from datetime import datetime
from identity_api import db


class Country(db.Model):
    __tablename__ = 'countries'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    code2 = db.Column(db.String(2), nullable=False, unique=True)
    code3 = db.Column(db.String(3), nullable=False)
    numeric_code = db.Column(db.String(3), nullable=True)
    phone_code = db.Column(db.String(10), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    provinces = db.relationship('ProvinceState', backref='country', lazy=True)

    def __repr__(self):
        return f'<Country {self.code2}>'


class ProvinceState(db.Model):
    __tablename__ = 'province_states'

    id = db.Column(db.Integer, primary_key=True)
    country_id = db.Column(db.Integer, db.ForeignKey('countries.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(10), nullable=False)
    type = db.Column(db.String(50), nullable=True)  # State, Province, Territory, ...
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    cities = db.relationship('City', backref='province_state', lazy=True)

    def __repr__(self):
        return f'<ProvinceState {self.code}>'


class City(db.Model):
    __tablename__ = 'cities'

    id = db.Column(db.Integer, primary_key=True)
    province_state_id = db.Column(db.Integer, db.ForeignKey('province_states.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    # City centre, used when an address cannot be geocoded
    latitude = db.Column(db.Numeric(9, 6), nullable=True)
    longitude = db.Column(db.Numeric(9, 6), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    addresses = db.relationship('Address', backref='city', lazy=True)

    def __repr__(self):
        return f'<City {self.name}>'


class Address(db.Model):
    __tablename__ = 'addresses'

    id = db.Column(db.Integer, primary_key=True)
    city_id = db.Column(db.Integer, db.ForeignKey('cities.id'), nullable=False, index=True)
    line1 = db.Column(db.String(200), nullable=False)
    line2 = db.Column(db.String(200), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    latitude = db.Column(db.Numeric(9, 6), nullable=True)
    longitude = db.Column(db.Numeric(9, 6), nullable=True)
    is_verified = db.Column(db.Boolean, default=False, nullable=False)  # GPS confirmed, e.g. by map pin
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)  # audit only, not ownership

    def to_dict(self):
        return {
            'id': self.id,
            'cityId': self.city_id,
            'line1': self.line1,
            'line2': self.line2,
            'postalCode': self.postal_code,
            'latitude': float(self.latitude) if self.latitude is not None else None,
            'longitude': float(self.longitude) if self.longitude is not None else None,
            'isVerified': self.is_verified,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Address {self.id}>'
