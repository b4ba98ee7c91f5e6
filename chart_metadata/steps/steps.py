from step_exec_lib.types import StepType, STEP_ALL

STEP_LOAD = StepType("load")
STEP_VALIDATE = StepType("validate")
STEP_OUTPUT = StepType("output")
ALL_STEPS = {
    STEP_ALL,
    STEP_LOAD,
    STEP_VALIDATE,
    STEP_OUTPUT,
}
