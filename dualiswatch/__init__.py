"""
dualiswatch: watch the DHBW Dualis portal for newly graded courses.
"""
