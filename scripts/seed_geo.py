#!/usr/bin/env python3
"""Seed geo reference data: countries, provinces/states and a few cities."""

import sys
import os

# Add parent directory to path to import identity_api
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from identity_api import create_app, db  # noqa: E402
from identity_api.models import Country, ProvinceState, City  # noqa: E402

COUNTRIES = [
    {'code2': 'US', 'code3': 'USA', 'numeric_code': '840', 'name': 'United States',
     'phone_code': '+1', 'sort_order': 1},
    {'code2': 'CA', 'code3': 'CAN', 'numeric_code': '124', 'name': 'Canada',
     'phone_code': '+1', 'sort_order': 2},
]

PROVINCES_STATES = {
    'US': [
        ('AZ', 'Arizona', 'State'), ('CA', 'California', 'State'), ('CO', 'Colorado', 'State'),
        ('FL', 'Florida', 'State'), ('GA', 'Georgia', 'State'), ('IL', 'Illinois', 'State'),
        ('MA', 'Massachusetts', 'State'), ('NV', 'Nevada', 'State'), ('NY', 'New York', 'State'),
        ('OR', 'Oregon', 'State'), ('TX', 'Texas', 'State'), ('WA', 'Washington', 'State'),
    ],
    'CA': [
        ('AB', 'Alberta', 'Province'), ('BC', 'British Columbia', 'Province'),
        ('MB', 'Manitoba', 'Province'), ('NS', 'Nova Scotia', 'Province'),
        ('ON', 'Ontario', 'Province'), ('QC', 'Quebec', 'Province'),
        ('SK', 'Saskatchewan', 'Province'), ('YT', 'Yukon', 'Territory'),
    ],
}

# (country, province code, city, latitude, longitude)
CITIES = [
    ('US', 'AZ', 'Phoenix', 33.448376, -112.074036),
    ('US', 'CA', 'Los Angeles', 34.052235, -118.243683),
    ('US', 'CA', 'San Francisco', 37.774929, -122.419418),
    ('US', 'CO', 'Denver', 39.739235, -104.990250),
    ('US', 'FL', 'Miami', 25.761681, -80.191788),
    ('US', 'IL', 'Chicago', 41.878113, -87.629799),
    ('US', 'NY', 'New York', 40.712776, -74.005974),
    ('US', 'TX', 'Austin', 30.267153, -97.743057),
    ('US', 'WA', 'Seattle', 47.606209, -122.332069),
    ('CA', 'BC', 'Vancouver', 49.282729, -123.120738),
    ('CA', 'ON', 'Toronto', 43.653225, -79.383186),
    ('CA', 'QC', 'Montreal', 45.501690, -73.567253),
]


def seed_geo():
    """Insert missing rows; existing rows keep their ids."""
    app = create_app()

    with app.app_context():
        print("Starting geo seeding...")
        added = {'countries': 0, 'provinces': 0, 'cities': 0}

        countries = {}
        for data in COUNTRIES:
            country = Country.query.filter_by(code2=data['code2']).first()
            if not country:
                country = Country(**data)
                db.session.add(country)
                added['countries'] += 1
                print(f"  Added country: {data['name']}")
            countries[data['code2']] = country
        db.session.flush()

        provinces = {}
        for code2, rows in PROVINCES_STATES.items():
            country = countries[code2]
            for order, (code, name, kind) in enumerate(rows, start=1):
                province = ProvinceState.query.filter_by(country_id=country.id, code=code).first()
                if not province:
                    province = ProvinceState(country_id=country.id, code=code, name=name,
                                             type=kind, sort_order=order)
                    db.session.add(province)
                    added['provinces'] += 1
                provinces[(code2, code)] = province
        db.session.flush()

        for code2, province_code, name, latitude, longitude in CITIES:
            province = provinces[(code2, province_code)]
            exists = City.query.filter(
                City.province_state_id == province.id,
                db.func.lower(City.name) == name.lower(),
            ).first()
            if not exists:
                db.session.add(City(province_state_id=province.id, name=name,
                                    latitude=latitude, longitude=longitude))
                added['cities'] += 1
                print(f"  Added city: {name}, {province_code}")

        db.session.commit()

        print("\n" + "=" * 50)
        print("Geo seeding completed!")
        print(f"Added: {added['countries']} countries, {added['provinces']} provinces/states, "
              f"{added['cities']} cities")
        print(f"Total cities in database: {City.query.count()}")
        print("=" * 50)


if __name__ == '__main__':
    seed_geo()
