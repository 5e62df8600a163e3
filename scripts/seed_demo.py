"""Populate a demo hotel group: head office, two resorts, departments and a small staff."""
from intranet.database import SessionLocal, init_db
from intranet.models.department import Department
from intranet.models.hotel_property import Property
from intranet.models.organization import Organization
from intranet.models.user import User, UserDepartment, UserProperty
from intranet.services import auth as auth_service
from intranet.services.job_titles import JobTitleService, suggest_system_role

DEMO_PASSWORD = "Demo123!"

PROPERTIES = [
    ("Head Office", "HQ", "Lisbon", True, ["Finance", "Human Resources", "Sales & Marketing"]),
    ("Seaside Resort", "SSR", "Faro", False, ["Front Office", "Housekeeping", "Food & Beverage"]),
    ("Mountain Lodge", "MTL", "Covilha", False, ["Front Office", "Housekeeping", "Maintenance"]),
]

# email, name, job title, property code, department, manager email
STAFF = [
    ("director@demo-hotels.com", "Dana Director", "Regional Director", "HQ", None, None),
    ("regional.hr@demo-hotels.com", "Rui Ramos", "Regional HR Manager", "HQ", "Human Resources",
     "director@demo-hotels.com"),
    ("gm.ssr@demo-hotels.com", "Sofia Sousa", "General Manager", "SSR", None, "director@demo-hotels.com"),
    ("hr.ssr@demo-hotels.com", "Hugo Henriques", "HR Manager", "SSR", None, "gm.ssr@demo-hotels.com"),
    ("fom.ssr@demo-hotels.com", "Filipa Faria", "Front Office Manager", "SSR", "Front Office",
     "gm.ssr@demo-hotels.com"),
    ("agent.ssr@demo-hotels.com", "Alex Almeida", "Front Desk Agent", "SSR", "Front Office",
     "fom.ssr@demo-hotels.com"),
    ("hk.ssr@demo-hotels.com", "Marta Moreira", "Executive Housekeeper", "SSR", "Housekeeping",
     "gm.ssr@demo-hotels.com"),
    ("gm.mtl@demo-hotels.com", "Tiago Teixeira", "General Manager", "MTL", None, "director@demo-hotels.com"),
    ("tech.mtl@demo-hotels.com", "Nuno Neves", "Maintenance Technician", "MTL", "Maintenance",
     "gm.mtl@demo-hotels.com"),
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        org = db.query(Organization).filter(Organization.slug == "demo-hotels").first()
        if org:
            print(f"Organization {org.name} already exists. Skipping.")
            return

        org = Organization(name="Demo Hotels", slug="demo-hotels")
        db.add(org)
        db.flush()

        properties, departments = {}, {}
        for name, code, city, is_hq, dept_names in PROPERTIES:
            prop = Property(organization_id=org.id, name=name, code=code, city=city, country="Portugal",
                            is_headquarters=is_hq)
            db.add(prop)
            db.flush()
            properties[code] = prop
            for dept_name in dept_names:
                dept = Department(organization_id=org.id, property_id=prop.id, name=dept_name)
                db.add(dept)
                db.flush()
                departments[(code, dept_name)] = dept

        hashed_password = auth_service.get_password_hash(DEMO_PASSWORD)
        users = {}
        for email, full_name, job_title, code, dept_name, manager_email in STAFF:
            user = User(
                email=email,
                full_name=full_name,
                job_title=job_title,
                role=suggest_system_role(job_title),
                hashed_password=hashed_password,
                organization_id=org.id,
                reporting_to_id=users[manager_email].id if manager_email else None,
                is_active=True,
            )
            user.property_assignments = [UserProperty(property_id=properties[code].id)]
            if dept_name:
                user.department_assignments = [UserDepartment(department_id=departments[(code, dept_name)].id)]
            db.add(user)
            db.flush()
            users[email] = user
            print(f"Created {user.role.value} -> {email}")

        db.commit()
        seeded = JobTitleService(db, org.id).seed_defaults()
        print(f"Seeded {seeded} job titles. All demo users share the password '{DEMO_PASSWORD}'")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
