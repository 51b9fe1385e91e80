"""Graphical user interface for scoreflow.

This subpackage contains the PyQt6 widgets and windows of the desktop
viewer.  The rendering and playback logic lives in
:mod:`scoreflow.core` and :mod:`scoreflow.controller`; the widgets here
only implement the mount points, forward toolbar clicks to the
controller and drive the playback clock.

Note that the GUI depends on ``PyQt6`` (including the ``QtSvg``
module).  Nothing outside this subpackage imports it, so the core can
be used and tested on a headless machine.
"""
