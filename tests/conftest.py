"""
Shared fixtures for the eVisa Portal test suite.
"""
import io
from datetime import date

import pytest
from PIL import Image

from evisa.models.draft import PendingFile


TODAY = date(2026, 3, 10)


def make_png(width: int, height: int, name: str = "photo.png") -> PendingFile:
    """Generate a real PNG of the given size in memory."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 180, 160)).save(buffer, format="PNG")
    return PendingFile(filename=name, content_type="image/png", content=buffer.getvalue())


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def service_type_data():
    return {
        "number_of_applicants": 1,
        "visa_type": "tourist",
        "visa_duration": "single",
        "purpose_of_visit": "Holiday in Ha Long Bay",
        "entry_date": "2026-04-01",
        "exit_date": "2026-04-20",
        "processing_time": "normal",
    }


@pytest.fixture
def personal_info_data():
    return {
        "full_name": "Alex Morgan",
        "date_of_birth": "1990-05-17",
        "nationality": "Canada",
        "passport_number": "AB1234567",
        "passport_issue_date": "2020-01-10",
        "passport_expiry_date": "2030-01-09",
        "passport_issuing_country": "Canada",
        "contact_info": {
            "full_name": "Alex Morgan",
            "phone_number": "+1 (604) 555-0134",
            "email_address": "alex.morgan@example.com",
            "current_address": "12 Harbour St, Vancouver",
            "vietnam_address": "45 Le Loi, District 1, Ho Chi Minh City",
        },
        "emergency_contact": {
            "full_name": "Sam Morgan",
            "phone_number": "+1 604 555 0199",
            "email_address": "sam.morgan@example.com",
            "relationship": "Sibling",
        },
        "file_uploads": {
            "passport_scan": "/uploads/existing/passport.jpg",
            "portrait_photo": "/uploads/existing/portrait.png",
        },
        "agreements": {
            "information_confirmation": True,
            "terms_and_conditions": True,
        },
    }


@pytest.fixture
def application_data(service_type_data, personal_info_data):
    return {"service_type": service_type_data, "personal_info": personal_info_data}


@pytest.fixture
def portrait_photo():
    return make_png(600, 750, "portrait.png")


@pytest.fixture
def passport_scan():
    return make_png(800, 560, "passport.png")
