"""Small smoke test for the Quickstart snippets.

This script assumes the package is installed with:

    pip install -e .

It fits a straight line twice:
 - blocking: levenberg_marquardt(...)
 - stepwise: LevenbergMarquardt with a ManualScheduler

and prints the progress so the iteration-by-iteration API can be eyeballed.
"""

from lmtools import levenberg_marquardt, LevenbergMarquardt, ManualScheduler

print("Running quickstart smoke test...")

data = {'x': [0, 1, 2, 3, 4], 'y': [1, 3, 5, 7, 9]}


def line(p):
    return lambda x: p[0] * x + p[1]


result = levenberg_marquardt(data, line, initial_values=[0, 0])
print("levenberg_marquardt call succeeded:", result)
print("  parameters =", result.parameter_values)

scheduler = ManualScheduler()
lm = LevenbergMarquardt(data, line, initial_values=[0, 0], max_values=[1, float('inf')],
                        scheduler=scheduler)
lm.start()
while lm.fitting:
    scheduler.run_pending()
    if lm.iteration % 20 == 0:
        print(f"  iteration {lm.iteration:3d}: error={lm.error:.4f} damping={lm.damping:.2e}")
print("bounded fit finished:", lm.get_results())

print("quickstart smoke test completed successfully")
