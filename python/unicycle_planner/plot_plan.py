"""
계획 확인용 스크립트: 전진 명령 한 번으로 만든 궤적을 그린다

사용법:
  python -m unicycle_planner.plot_plan [전진 명령] [각속도 명령]

그래프:
  - 평면: footstep, DCM, CoM
  - 시간: DCM/CoM x, y
  - 시간: CoM 높이, 발 접촉
"""
import logging
import os
import sys

import mujoco
import numpy as np
from scipy.spatial.transform import Rotation

from unicycle_planner import config
from unicycle_planner.trajectory_planner import (
    FootTransform,
    Input,
    UnicycleTrajectoryPlanner,
)

FEET_XML = """
<mujoco>
  <worldbody>
    <body name="l_foot" pos="0 0.1 0"><geom type="box" size="0.1 0.05 0.02"/>
      <site name="l_sole"/></body>
    <body name="r_foot" pos="0 -0.1 0"><geom type="box" size="0.1 0.05 0.02"/>
      <site name="r_sole"/></body>
  </worldbody>
</mujoco>
"""

PARAMETERS = {
    "referencePosition": [0.1, 0.0],
    "saturationFactors": [0.7, 0.7],
    "mergePointRatios": [0.4, 0.4],
    "leftZMPDelta": [0.0, 0.0],
    "rightZMPDelta": [0.0, 0.0],
    "leftContactFrameName": "l_sole",
    "rightContactFrameName": "r_sole",
    "dt": 0.01,
    "plannerHorizon": 8.0,
}


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    forward = float(sys.argv[1]) if len(sys.argv) > 1 else 1.0
    angular = float(sys.argv[2]) if len(sys.argv) > 2 else 0.0

    planner = UnicycleTrajectoryPlanner()
    if not planner.initialize(PARAMETERS):
        sys.exit(1)
    if not planner.set_robot_contact_frames(mujoco.MjModel.from_xml_string(FEET_XML)):
        sys.exit(1)
    planner.advance()

    half_width = 0.5 * config.NOMINAL_WIDTH
    planner.set_input(Input(
        planner_input=np.array([forward, 0.0, angular]),
        is_left_last_swinging=False,
        measured_transform=FootTransform(np.array([0.0, half_width, 0.0]),
                                         Rotation.identity()),
    ))
    if not planner.advance():
        sys.exit(1)

    output = planner.get_output()
    phases = planner.get_contact_phase_list()
    for phase in phases:
        logging.info(f"phase [{phase.begin_time * 1e-9:.2f}, {phase.end_time * 1e-9:.2f}) "
                     f"{sorted(phase.active_contacts)}")

    plot_plan(output, PARAMETERS["dt"])


def plot_plan(output, dt):
    import matplotlib.pyplot as plt

    dcm = output.dcm_trajectory.position
    com = output.com_trajectory.position
    t = np.arange(len(dcm)) * dt

    fig, axes = plt.subplots(3, 1, figsize=(10, 12))
    fig.suptitle('Unicycle Plan')

    # 1. 평면
    ax = axes[0]
    left = np.array([s.position for s in output.steps.left_steps])
    right = np.array([s.position for s in output.steps.right_steps])
    ax.plot(left[:, 0], left[:, 1], 'bs', label='left steps')
    ax.plot(right[:, 0], right[:, 1], 'rs', label='right steps')
    ax.plot(dcm[:, 0], dcm[:, 1], 'g-', label='DCM')
    ax.plot(com[:, 0], com[:, 1], 'k--', label='CoM')
    ax.set_xlabel('x (m)')
    ax.set_ylabel('y (m)')
    ax.axis('equal')
    ax.legend(fontsize=8)
    ax.grid(True, alpha=0.3)

    # 2. DCM / CoM
    ax = axes[1]
    ax.plot(t, dcm[:, 0], label='DCM x')
    ax.plot(t, dcm[:, 1], label='DCM y')
    ax.plot(t, com[:, 0], '--', label='CoM x')
    ax.plot(t, com[:, 1], '--', label='CoM y')
    for k in output.merge_points:
        ax.axvline(k * dt, color='gray', alpha=0.3)
    ax.set_ylabel('Position (m)')
    ax.legend(fontsize=8)
    ax.grid(True, alpha=0.3)

    # 3. 높이 + 접촉
    ax = axes[2]
    ax.plot(t, com[:, 2], label='CoM z')
    ax2 = ax.twinx()
    ax2.step(t, np.array(output.contact_status.left_foot_in_contact, dtype=float) + 0.02,
             'b', alpha=0.5, label='left contact')
    ax2.step(t, np.array(output.contact_status.right_foot_in_contact, dtype=float),
             'r', alpha=0.5, label='right contact')
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Height (m)')
    ax.legend(fontsize=8, loc='upper left')
    ax2.legend(fontsize=8, loc='upper right')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(os.path.join(os.getcwd(), 'unicycle_plan.png'), dpi=150)
    plt.show()
    print("그래프 저장: unicycle_plan.png")


if __name__ == "__main__":
    main()
