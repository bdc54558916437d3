#!/usr/bin/env python
"""Create the lead tables and load a few sample leads into the configured database.

The samples go through the same canonicalizer the intake screens use, so they
exercise the alias table (``bankName``, ``addressLine1``, flat co-applicant keys)
as well as the address fan-out in the store.

Usage:
    python scripts/bootstrap_sample_leads.py [--reset] [--dry-run]

Options:
    --reset:    Drop and recreate the lead tables before loading.
    --dry-run:  Canonicalize the samples and print them without touching the database.
"""

from __future__ import annotations

import argparse
import json
import logging

from sqlalchemy.orm import sessionmaker

from kyclead.normalization.canonicalizer import canonicalize
from kyclead.observability import configure_logging
from kyclead.services.factories import build_lead_store
from kyclead.settings import get_settings
from kyclead.store import sql as sql_schema

LOGGER = logging.getLogger("kyclead.scripts.bootstrap_sample_leads")

SAMPLE_PAYLOADS = [
    {
        "id": "sample-lead-001",
        "name": "John Doe",
        "age": "35",
        "phone": "9876543210",
        "email": "john.doe@example.com",
        "dateOfBirth": "1988-05-15",
        "fatherName": "Robert Doe",
        "motherName": "Mary Doe",
        "gender": "Male",
        "designation": "Software Engineer",
        "company": "Tech Corp",
        "monthlyIncome": "75000",
        "bankName": "HDFC Bank",
        "leadType": "Home Loan",
        "agencyFileNo": "AGY001",
        "applicationBarcode": "BC001",
        "caseId": "CASE001",
        "schemeDesc": "Home Loan Scheme",
        "loanAmount": "2500000",
        "addresses": [
            {
                "type": "Residence",
                "addressLine1": "123 Main Street",
                "city": "Mumbai",
                "district": "Mumbai",
                "state": "Maharashtra",
                "pincode": "400001",
            },
            {
                "type": "Office",
                "addressLine1": "456 Business Park",
                "city": "Mumbai",
                "district": "Mumbai",
                "state": "Maharashtra",
                "pincode": "400002",
            },
        ],
        "hasCoApplicant": True,
        "coApplicantName": "Jane Doe",
        "coApplicantAge": "32",
        "coApplicantPhone": "9876543211",
        "coApplicantEmail": "jane.doe@example.com",
        "coApplicantRelation": "Spouse",
        "coApplicantOccupation": "Teacher",
        "coApplicantIncome": "50000",
        "coApplicantAddresses": [
            {
                "type": "Office",
                "street": "12 School Road",
                "city": "Mumbai",
                "district": "Mumbai",
                "state": "Maharashtra",
                "pincode": "400003",
            }
        ],
        "instructions": "Sample lead with co-applicant",
    },
    {
        "id": "sample-lead-002",
        "name": "Alice Smith",
        "age": "28",
        "phoneNumbers": [
            {"number": "9876543212", "isPrimary": False},
            {"number": "9876543299", "isPrimary": True},
        ],
        "email": "alice.smith@example.com",
        "gender": "Female",
        "designation": "Marketing Manager",
        "company": "Marketing Solutions",
        "monthlyIncome": "65000",
        "bank": {"id": "icici", "name": "ICICI Bank"},
        "leadType": "Personal Loan",
        "visitType": "Online verification",
        "addresses": [
            {
                "type": "Residence",
                "addressLine1": "321 Park Avenue",
                "city": "Delhi",
                "district": "New Delhi",
                "state": "Delhi",
                "pincode": "110001",
            },
            {
                "type": "Temporary",
                "addressLine1": "987 Temporary Stay",
                "city": "Noida",
                "district": "Gautam Buddha Nagar",
                "state": "Uttar Pradesh",
                "pincode": "201301",
            },
        ],
        "hasCoApplicant": False,
        "instructions": "Sample lead without co-applicant",
    },
    {
        "id": "sample-lead-003",
        "name": "Bob Johnson",
        "age": "forty-two",
        "phone": "9876543213",
        "bankName": "Totally New Bank",
        "leadType": "Car Loan",
        "vehicleBrand": "Toyota",
        "vehicleModel": "Innova",
        "addresses": [],
        "instructions": "Sample vehicle lead with defaulted fields",
    },
]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load sample leads into the configured database")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate lead tables before loading")
    parser.add_argument("--dry-run", action="store_true", help="Print canonical leads without writing them")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    leads = [canonicalize(payload) for payload in SAMPLE_PAYLOADS]
    if args.dry_run:
        for lead in leads:
            print(json.dumps(lead.model_dump(mode="json"), indent=2))
        return

    engine = sql_schema.build_engine(settings=settings)
    if args.reset:
        LOGGER.info("Dropping lead tables on %s", engine.url.render_as_string(hide_password=True))
        sql_schema.METADATA.drop_all(engine)
    sql_schema.METADATA.create_all(engine)

    store = build_lead_store(session_factory=sessionmaker(bind=engine, future=True), settings=settings)
    for lead in leads:
        store.persist(lead)
        LOGGER.info("Loaded %s (%s, bank=%s)", lead.id, lead.name or "<unnamed>", lead.bank)
    print(f"Loaded {len(leads)} sample leads")


if __name__ == "__main__":
    main()
