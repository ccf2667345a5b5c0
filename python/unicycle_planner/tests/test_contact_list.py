"""ContactList / ContactPhaseList / get_contact_list 테스트"""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from unicycle_planner.contact_list import (
    Contact,
    ContactList,
    ContactPhaseList,
    get_contact_list,
)
from unicycle_planner.unicycle_generator import Step


def make_contact(begin, end, name="left_foot"):
    return Contact(np.zeros(3), 0.0, begin, end, name)


class TestContactList:
    def test_sorted_insertion(self):
        contacts = ContactList()
        assert contacts.add_contact(make_contact(30, 40))
        assert contacts.add_contact(make_contact(0, 10))
        assert contacts.add_contact(make_contact(10, 20))
        assert [c.activation_time for c in contacts] == [0, 10, 30]

    def test_rejects_inverted_interval(self):
        contacts = ContactList()
        assert not contacts.add_contact(make_contact(10, 10))
        assert not contacts.add_contact(make_contact(20, 10))
        assert len(contacts) == 0

    def test_rejects_overlap(self):
        contacts = ContactList()
        assert contacts.add_contact(make_contact(10, 20))
        assert not contacts.add_contact(make_contact(15, 25))
        assert not contacts.add_contact(make_contact(5, 11))
        assert len(contacts) == 1

    def test_active_contact(self):
        contacts = ContactList()
        contacts.add_contact(make_contact(0, 10))
        assert contacts.active_contact(0) is contacts[0]
        assert contacts.active_contact(9) is contacts[0]
        assert contacts.active_contact(10) is None

    def test_first_last(self):
        contacts = ContactList()
        assert contacts.first_contact() is None
        contacts.add_contact(make_contact(0, 10))
        contacts.add_contact(make_contact(20, 30))
        assert contacts.first_contact().activation_time == 0
        assert contacts.last_contact().activation_time == 20


class TestContactPhaseList:
    def test_walking_phases(self):
        left = ContactList("left_foot")
        right = ContactList("right_foot")
        left.add_contact(make_contact(0, 100, "left_foot"))
        right.add_contact(make_contact(0, 40, "right_foot"))
        right.add_contact(make_contact(60, 100, "right_foot"))

        phases = ContactPhaseList()
        assert phases.set_lists({"left_foot": left, "right_foot": right})
        assert [(p.begin_time, p.end_time) for p in phases] == [(0, 40), (40, 60), (60, 100)]
        assert set(phases.phases()[0].active_contacts) == {"left_foot", "right_foot"}
        assert set(phases.phases()[1].active_contacts) == {"left_foot"}
        assert phases.first_phase().begin_time == 0
        assert phases.last_phase().end_time == 100

    def test_empty(self):
        phases = ContactPhaseList()
        assert len(phases) == 0
        assert phases.lists() == {}
        assert phases.first_phase() is None


class TestGetContactList:
    DT = 10_000_000  # 10 ms

    @pytest.fixture
    def steps(self):
        return [Step(np.array([0.0, 0.1]), 0.0, 0.0),
                Step(np.array([0.2, 0.1]), 0.1, 1.0),
                Step(np.array([0.4, 0.1]), 0.0, 2.0)]

    def test_runs_paired_with_steps(self, steps):
        in_contact = [True] * 5 + [False] * 3 + [True] * 4 + [False] * 2 + [True] * 3
        ok, contacts = get_contact_list(1_000, self.DT, in_contact, steps, 7, "left_foot")
        assert ok
        assert len(contacts) == 3
        assert contacts[0].activation_time == 1_000
        assert contacts[0].deactivation_time == 1_000 + 5 * self.DT
        assert contacts[1].activation_time == 1_000 + 8 * self.DT
        assert contacts[2].deactivation_time == 1_000 + len(in_contact) * self.DT
        np.testing.assert_allclose(contacts[1].position, [0.2, 0.1, 0.0])
        assert contacts[1].yaw == pytest.approx(0.1)
        assert all(c.index == 7 and c.name == "left_foot" for c in contacts)

    def test_skips_first_step_when_starting_in_swing(self, steps):
        in_contact = [False] * 3 + [True] * 4
        ok, contacts = get_contact_list(0, self.DT, in_contact, steps, 0, "right_foot")
        assert ok
        assert len(contacts) == 1
        np.testing.assert_allclose(contacts[0].position, [0.2, 0.1, 0.0])

    def test_too_many_runs(self, steps):
        in_contact = [True, False] * 4
        ok, _ = get_contact_list(0, self.DT, in_contact, steps, 0, "left_foot")
        assert not ok

    def test_always_swinging(self, steps):
        ok, contacts = get_contact_list(0, self.DT, [False] * 5, steps, 0, "left_foot")
        assert ok
        assert len(contacts) == 0

    def test_intervals_strictly_increasing(self, steps):
        in_contact = [True] * 2 + [False] + [True] * 2 + [False] + [True]
        ok, contacts = get_contact_list(0, self.DT, in_contact, steps, 0, "left_foot")
        assert ok
        for a, b in zip(contacts[:-1], contacts[1:]):
            assert a.activation_time < a.deactivation_time <= b.activation_time
