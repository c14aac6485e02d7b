from momentum import db
from momentum.models import (
    FamilyMember,
    Household,
    HouseholdLink,
    LinkStatus,
    MemberRole,
    Routine,
    SharingCategory,
    SharingValue,
    Task,
    TaskStatus,
    generate_link_code,
    utcnow,
)


def seed_demo_households():
    """Two households sharing one child, with a few tasks and a routine each.

    Expects an empty schema; returns a short summary for the CLI.
    """
    now = utcnow()
    parent_a = FamilyMember(first_name='Dana', email='dana@example.com', role=MemberRole.PARENT)
    parent_b = FamilyMember(first_name='Sam', email='sam@example.com', role=MemberRole.PARENT)
    child = FamilyMember(first_name='Riley', role=MemberRole.CHILD)
    db.session.add_all([parent_a, parent_b, child])
    db.session.flush()

    home_a = Household(name='Maple Street')
    home_b = Household(name='Harbor View')
    db.session.add_all([home_a, home_b])
    db.session.flush()

    home_a.add_profile(parent_a.id, 'Mom', MemberRole.PARENT, '#DB2777')
    riley_a = home_a.add_profile(child.id, 'Riley', MemberRole.CHILD, '#4F46E5')
    home_b.add_profile(parent_b.id, 'Dad', MemberRole.PARENT, '#059669')
    riley_b = home_b.add_profile(child.id, 'Riley', MemberRole.CHILD, '#4F46E5')
    db.session.flush()

    code = generate_link_code()
    link = HouseholdLink(
        child_id=child.id,
        household1_id=home_a.id,
        household2_id=home_b.id,
        link_code=code,
        created_by_id=parent_a.id,
        accepted_by_id=parent_b.id,
        created_at=now,
        accepted_at=now,
        status=LinkStatus.ACTIVE,
    )
    link.apply_setting(SharingCategory.POINTS, SharingValue.SHARED)
    link.apply_setting(SharingCategory.TASKS, SharingValue.SHARED)
    db.session.add(link)
    child.add_linked_household(home_b.id, code, parent_b.id, linked_at=now)

    for household, profile, titles in (
        (home_a, riley_a, [('Make bed', 5), ('Feed the cat', 10)]),
        (home_b, riley_b, [('Homework', 15)]),
    ):
        for title, points in titles:
            task = Task(household_id=household.id, title=title, points_value=points, status=TaskStatus.PENDING)
            task.assignees = [profile]
            db.session.add(task)
        db.session.add(Routine(
            household_id=household.id,
            assigned_to=profile,
            title='Brush teeth',
            points_reward=5,
        ))

    db.session.commit()
    return f"households={home_a.id},{home_b.id} child={child.id} link={link.id}"
