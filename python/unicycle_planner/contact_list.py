"""Contact phase 표현 + 발 접촉 타임라인 → ContactList 변환

시간 단위는 정수 나노초. 한 발의 contact 구간은 [activation, deactivation)이며
서로 겹치지 않고 시간 순으로 정렬된다.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class Contact:
    """고정 pose에 있는 발의 contact 구간."""
    position: np.ndarray                # (3,) 월드 좌표
    yaw: float
    activation_time: int                # ns
    deactivation_time: int              # ns
    name: str = ""
    index: int = -1                     # contact frame 인덱스


class ContactList:
    """한 발의 contact 목록 (activation time 순)."""

    def __init__(self, default_name: str = "", default_index: int = -1):
        self.default_name = default_name
        self.default_index = default_index
        self._contacts: List[Contact] = []

    def add_contact(self, contact: Contact) -> bool:
        """겹치지 않는 위치에 contact 삽입. 구간이 뒤집혔거나 겹치면 False."""
        if contact.deactivation_time <= contact.activation_time:
            logger.error(f"[ContactList.add_contact] The activation time "
                         f"({contact.activation_time}) must be smaller than the "
                         f"deactivation time ({contact.deactivation_time}).")
            return False

        pos = 0
        while (pos < len(self._contacts)
               and self._contacts[pos].activation_time < contact.activation_time):
            pos += 1

        if pos > 0 and self._contacts[pos - 1].deactivation_time > contact.activation_time:
            logger.error(f"[ContactList.add_contact] The contact '{contact.name}' "
                         f"overlaps with the previous one.")
            return False
        if (pos < len(self._contacts)
                and contact.deactivation_time > self._contacts[pos].activation_time):
            logger.error(f"[ContactList.add_contact] The contact '{contact.name}' "
                         f"overlaps with the next one.")
            return False

        self._contacts.insert(pos, contact)
        return True

    def active_contact(self, time: int) -> Optional[Contact]:
        for contact in self._contacts:
            if contact.activation_time <= time < contact.deactivation_time:
                return contact
        return None

    def first_contact(self) -> Optional[Contact]:
        return self._contacts[0] if self._contacts else None

    def last_contact(self) -> Optional[Contact]:
        return self._contacts[-1] if self._contacts else None

    def __len__(self):
        return len(self._contacts)

    def __iter__(self):
        return iter(self._contacts)

    def __getitem__(self, i) -> Contact:
        return self._contacts[i]


@dataclass
class ContactPhase:
    """활성 contact 집합이 일정한 시간 구간."""
    begin_time: int
    end_time: int
    active_contacts: Dict[str, Contact] = field(default_factory=dict)


class ContactPhaseList:
    """발별 ContactList 맵 + 이로부터 유도되는 phase 목록."""

    def __init__(self):
        self._lists: Dict[str, ContactList] = {}
        self._phases: List[ContactPhase] = []

    def set_lists(self, lists: Dict[str, ContactList]) -> bool:
        self._lists = dict(lists)
        self._create_phases()
        return True

    def lists(self) -> Dict[str, ContactList]:
        return self._lists

    def _create_phases(self):
        # 모든 activation/deactivation 시각이 phase 경계
        boundaries = set()
        for contact_list in self._lists.values():
            for contact in contact_list:
                boundaries.add(contact.activation_time)
                boundaries.add(contact.deactivation_time)
        boundaries = sorted(boundaries)

        self._phases = []
        for begin, end in zip(boundaries[:-1], boundaries[1:]):
            active = {}
            for key, contact_list in self._lists.items():
                contact = contact_list.active_contact(begin)
                if contact is not None:
                    active[key] = contact
            if not active:
                continue
            # 활성 집합이 같으면 이전 phase를 연장
            if (self._phases and self._phases[-1].end_time == begin
                    and _same_contacts(self._phases[-1].active_contacts, active)):
                self._phases[-1].end_time = end
            else:
                self._phases.append(ContactPhase(begin, end, active))

    def phases(self) -> List[ContactPhase]:
        return self._phases

    def first_phase(self) -> Optional[ContactPhase]:
        return self._phases[0] if self._phases else None

    def last_phase(self) -> Optional[ContactPhase]:
        return self._phases[-1] if self._phases else None

    def __len__(self):
        return len(self._phases)

    def __iter__(self):
        return iter(self._phases)


def _same_contacts(a: Dict[str, Contact], b: Dict[str, Contact]) -> bool:
    return a.keys() == b.keys() and all(a[k] is b[k] for k in a)


def _contact_runs(in_contact: Sequence[bool]) -> List[Tuple[int, int]]:
    """연속된 True 구간 [begin, end) 인덱스 목록."""
    runs = []
    begin = None
    for i, value in enumerate(in_contact):
        if value and begin is None:
            begin = i
        elif not value and begin is not None:
            runs.append((begin, i))
            begin = None
    if begin is not None:
        runs.append((begin, len(in_contact)))
    return runs


def get_contact_list(start_time: int, dt: int, in_contact: Sequence[bool],
                     steps, frame_index: int, label: str):
    """발 접촉 타임라인 + footstep 목록 → ContactList.

    각 연속 접촉 구간은 footstep과 순서대로 짝지어진다. 타임라인이 swing으로
    시작하면 첫 footstep(이륙 전 위치)은 건너뛴다.

    Args:
        start_time: 타임라인 첫 샘플 시각 (ns)
        dt: 샘플 주기 (ns)
        in_contact: 샘플별 접촉 여부
        steps: .position (2,), .angle 속성을 가진 footstep 목록
        frame_index: contact frame 인덱스
        label: contact 이름 ("left_foot" / "right_foot")

    Returns:
        (ok, ContactList)
    """
    contact_list = ContactList(label, frame_index)

    runs = _contact_runs(in_contact)
    offset = 0 if (len(in_contact) > 0 and in_contact[0]) else 1
    if len(runs) == 0:
        return True, contact_list

    if len(runs) + offset > len(steps):
        logger.error(f"[get_contact_list] The number of contact phases "
                     f"({len(runs)}) of '{label}' is not consistent with the "
                     f"number of footsteps ({len(steps)}).")
        return False, contact_list

    for i, (begin, end) in enumerate(runs):
        step = steps[i + offset]
        contact = Contact(
            position=np.array([step.position[0], step.position[1], 0.0]),
            yaw=float(step.angle),
            activation_time=start_time + begin * dt,
            deactivation_time=start_time + end * dt,
            name=label,
            index=frame_index,
        )
        if not contact_list.add_contact(contact):
            logger.error(f"[get_contact_list] Unable to add the contact number {i} "
                         f"of '{label}'.")
            return False, contact_list

    return True, contact_list
