"""
Proctoring Monitor
Counts secure-mode violations for one attempt and forces submission

Each exit from secure mode (full screen lost or page hidden) adds a warning.
Past the ceiling the attempt is submitted at once; otherwise a countdown
starts that submits unless secure mode is restored first. Warnings are
cumulative for the life of the attempt. After the first forced submission
the monitor disarms and ignores further events.
"""
import logging
import threading
import time

logger = logging.getLogger(__name__)

REASON_MAX_WARNINGS = 'max_warnings'
REASON_COUNTDOWN = 'countdown_expired'


class ProctorMonitor:
    """Violation state machine for a single attempt"""

    def __init__(self, attempt_id, on_finalize, max_warnings=3, countdown_seconds=10,
                 timer_factory=threading.Timer, clock=time.monotonic):
        self.attempt_id = attempt_id
        self.max_warnings = max_warnings
        self.countdown_seconds = countdown_seconds
        self.warning_count = 0
        self.armed = True
        self.finalize_reason = None

        self._on_finalize = on_finalize
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.RLock()
        self._timer = None
        self._countdown_started = None
        self._generation = 0

    def __repr__(self):
        return f'<ProctorMonitor attempt={self.attempt_id} warnings={self.warning_count} armed={self.armed}>'

    # ================= EVENTS =================

    def secure_mode_exited(self):
        """Record a violation; returns the resulting status"""
        reason = None
        with self._lock:
            if not self.armed:
                return self._snapshot()

            self._cancel_timer()
            self.warning_count += 1
            logger.info("Attempt %s left secure mode (warning %d of %d)",
                        self.attempt_id, self.warning_count, self.max_warnings)

            if self.warning_count > self.max_warnings:
                reason = REASON_MAX_WARNINGS
                self._disarm()
            else:
                self._start_countdown()
            status = self._snapshot()

        if reason:
            self._fire(reason)
            status = self.snapshot()
        return status

    def secure_mode_restored(self):
        """Cancel a pending countdown; the warning count is kept"""
        with self._lock:
            if self.armed and self._timer is not None:
                logger.info("Attempt %s returned to secure mode", self.attempt_id)
                self._cancel_timer()
            return self._snapshot()

    def pause(self):
        """Stop any countdown while the exam page is closed; warnings stay"""
        with self._lock:
            if self.armed:
                self._cancel_timer()
            return self._snapshot()

    def disarm(self):
        with self._lock:
            self._disarm()

    # ================= STATUS =================

    @property
    def countdown_active(self):
        return self._timer is not None

    def seconds_left(self):
        with self._lock:
            return self._seconds_left()

    def snapshot(self):
        with self._lock:
            return self._snapshot()

    def _seconds_left(self):
        if self._timer is None:
            return self.countdown_seconds
        elapsed = self._clock() - self._countdown_started
        return max(0, self.countdown_seconds - elapsed)

    def _snapshot(self):
        return {
            'attemptId': self.attempt_id,
            'warningCount': self.warning_count,
            'maxWarnings': self.max_warnings,
            'warningsLeft': max(0, self.max_warnings - self.warning_count),
            'countdownActive': self._timer is not None,
            'secondsLeft': self._seconds_left(),
            'armed': self.armed,
            'finalizeReason': self.finalize_reason,
        }

    # ================= TIMER =================

    def _start_countdown(self):
        self._generation += 1
        timer = self._timer_factory(
            self.countdown_seconds, self._countdown_elapsed, args=(self._generation,)
        )
        timer.daemon = True
        self._timer = timer
        self._countdown_started = self._clock()
        timer.start()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._countdown_started = None
        self._generation += 1

    def _countdown_elapsed(self, generation):
        with self._lock:
            # A cancelled timer can still fire once; ignore stale generations
            if not self.armed or generation != self._generation:
                return
            self._timer = None
            self._disarm()
        self._fire(REASON_COUNTDOWN)

    def _disarm(self):
        self._cancel_timer()
        self.armed = False

    def _fire(self, reason):
        self.finalize_reason = reason
        logger.info("Forcing submission of attempt %s (%s)", self.attempt_id, reason)
        self._on_finalize(self.attempt_id, reason)


class ProctorRegistry:
    """Owns the live monitors, keyed by attempt id"""

    def __init__(self, app=None, timer_factory=threading.Timer):
        self.max_warnings = 3
        self.countdown_seconds = 10
        self.timer_factory = timer_factory
        self._monitors = {}
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.max_warnings = app.config['PROCTOR_MAX_WARNINGS']
        self.countdown_seconds = app.config['PROCTOR_COUNTDOWN_SECONDS']
        app.extensions['examgate.proctoring'] = self

    def __len__(self):
        return len(self._monitors)

    def __contains__(self, attempt_id):
        return attempt_id in self._monitors

    def get(self, attempt_id):
        return self._monitors.get(attempt_id)

    def start(self, attempt_id, on_finalize):
        """Return the attempt's monitor, creating it on first use"""
        with self._lock:
            monitor = self._monitors.get(attempt_id)
            if monitor is not None and monitor.armed:
                return monitor

            def finalize(finalized_id, reason):
                self._forget(finalized_id)
                on_finalize(finalized_id, reason)

            monitor = ProctorMonitor(
                attempt_id,
                finalize,
                max_warnings=self.max_warnings,
                countdown_seconds=self.countdown_seconds,
                timer_factory=self.timer_factory,
            )
            self._monitors[attempt_id] = monitor
            return monitor

    def pause(self, attempt_id):
        """
        Client-requested stop. The monitor stays registered so a later
        start resumes with the same warning count.
        """
        monitor = self.get(attempt_id)
        if monitor is None:
            return None
        return monitor.pause()

    def discard(self, attempt_id):
        """Disarm and drop a monitor once its attempt is submitted"""
        with self._lock:
            monitor = self._monitors.pop(attempt_id, None)
        if monitor is not None:
            monitor.disarm()
        return monitor

    def _forget(self, attempt_id):
        with self._lock:
            self._monitors.pop(attempt_id, None)


proctor_registry = ProctorRegistry()
