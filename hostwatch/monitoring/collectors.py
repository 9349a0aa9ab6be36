"""
Host metric collectors.

Each collector reads one subsystem through psutil (or /proc and nvidia-smi
where psutil has no equivalent) and emits dotted metric names such as
``cpu.total.usage`` or ``disk.root.used_pct``. Rate metrics are derived from
the previous reading kept on the collector instance, so the first call after
start only primes that state.
"""

import logging
import shutil
import subprocess
import sys
import time
from typing import Dict, List, Optional, Tuple

import psutil

from hostwatch.monitoring.metrics_collector import (
    Collector, CollectContext, CollectionError, ImpactLevel, MetricSample,
    make_sample, sanitize_name
)


logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 10
MIN_TOP_N = 1
MAX_TOP_N = 50

_CPU_FIELDS = ('user', 'system', 'idle', 'iowait', 'steal', 'nice', 'irq', 'softirq')


def _cpu_deltas(prev, cur) -> Dict[str, float]:
    """Per-field difference between two cpu_times readings."""
    return {
        f: getattr(cur, f, 0.0) - getattr(prev, f, 0.0)
        for f in _CPU_FIELDS
    }


class CPUCollector(Collector):
    """Total and per-core CPU usage, load average, context switches."""

    id = 'cpu'
    name = 'CPU'
    description = 'CPU usage, per-core stats, load average, context switches'
    impact = ImpactLevel.NONE

    def __init__(self):
        self._prev_times = None
        self._prev_per_core = None

    def metric_names(self) -> List[str]:
        return [
            'cpu.total.usage', 'cpu.total.user', 'cpu.total.system', 'cpu.total.idle', 'cpu.total.iowait',
            'cpu.core.*.usage',
            'cpu.load.1', 'cpu.load.5', 'cpu.load.15',
            'cpu.context_switches', 'cpu.interrupts',
        ]

    def collect(self, ctx: Optional[CollectContext] = None) -> List[MetricSample]:
        now = self._now()
        samples = []

        # Total usage needs two readings
        try:
            cur = psutil.cpu_times()
            if self._prev_times is not None:
                d = _cpu_deltas(self._prev_times, cur)
                total = sum(d.values())
                if total > 0:
                    samples.extend([
                        make_sample(now, self.id, 'cpu.total.usage', (total - d['idle']) / total * 100),
                        make_sample(now, self.id, 'cpu.total.user', d['user'] / total * 100),
                        make_sample(now, self.id, 'cpu.total.system', d['system'] / total * 100),
                        make_sample(now, self.id, 'cpu.total.idle', d['idle'] / total * 100),
                        make_sample(now, self.id, 'cpu.total.iowait', d['iowait'] / total * 100),
                    ])
            self._prev_times = cur
        except (OSError, psutil.Error) as e:
            logger.debug(f"cpu_times failed: {e}")

        try:
            per_core = psutil.cpu_times(percpu=True)
            if self._prev_per_core is not None and len(self._prev_per_core) == len(per_core):
                for i, (prev, cur) in enumerate(zip(self._prev_per_core, per_core)):
                    d = _cpu_deltas(prev, cur)
                    busy = d['user'] + d['system'] + d['nice'] + d['irq'] + d['softirq'] + d['steal']
                    total = busy + d['idle'] + d['iowait']
                    pct = busy / total * 100 if total > 0 else 0.0
                    samples.append(make_sample(now, self.id, f'cpu.core.{i}.usage', pct))
            self._prev_per_core = per_core
        except (OSError, psutil.Error) as e:
            logger.debug(f"per-core cpu_times failed: {e}")

        try:
            load1, load5, load15 = psutil.getloadavg()
            samples.extend([
                make_sample(now, self.id, 'cpu.load.1', load1),
                make_sample(now, self.id, 'cpu.load.5', load5),
                make_sample(now, self.id, 'cpu.load.15', load15),
            ])
        except (OSError, AttributeError, psutil.Error) as e:
            logger.debug(f"getloadavg failed: {e}")

        try:
            stats = psutil.cpu_stats()
            samples.extend([
                make_sample(now, self.id, 'cpu.context_switches', stats.ctx_switches),
                make_sample(now, self.id, 'cpu.interrupts', stats.interrupts),
            ])
        except (OSError, psutil.Error) as e:
            logger.debug(f"cpu_stats failed: {e}")

        return samples


class MemoryCollector(Collector):
    """Virtual memory and swap usage."""

    id = 'memory'
    name = 'Memory'
    description = 'Memory and swap usage'
    impact = ImpactLevel.NONE

    def metric_names(self) -> List[str]:
        return [
            'mem.total', 'mem.used', 'mem.free', 'mem.available', 'mem.cached', 'mem.buffers', 'mem.used_pct',
            'mem.swap.total', 'mem.swap.used', 'mem.swap.free',
        ]

    def collect(self, ctx: Optional[CollectContext] = None) -> List[MetricSample]:
        now = self._now()
        samples = []

        try:
            vm = psutil.virtual_memory()
            samples.extend([
                make_sample(now, self.id, 'mem.total', vm.total),
                make_sample(now, self.id, 'mem.used', vm.used),
                make_sample(now, self.id, 'mem.free', vm.free),
                make_sample(now, self.id, 'mem.available', vm.available),
                make_sample(now, self.id, 'mem.cached', getattr(vm, 'cached', 0)),
                make_sample(now, self.id, 'mem.buffers', getattr(vm, 'buffers', 0)),
                make_sample(now, self.id, 'mem.used_pct', vm.percent),
            ])
        except (OSError, psutil.Error) as e:
            logger.debug(f"virtual_memory failed: {e}")

        try:
            sw = psutil.swap_memory()
            samples.extend([
                make_sample(now, self.id, 'mem.swap.total', sw.total),
                make_sample(now, self.id, 'mem.swap.used', sw.used),
                make_sample(now, self.id, 'mem.swap.free', sw.free),
            ])
        except (OSError, psutil.Error) as e:
            logger.debug(f"swap_memory failed: {e}")

        return samples


class DiskCollector(Collector):
    """Per-device I/O counters and per-mount filesystem usage."""

    id = 'disk'
    name = 'Disk'
    description = 'Disk I/O stats and filesystem usage'
    impact = ImpactLevel.NONE

    def metric_names(self) -> List[str]:
        return [
            'disk.*.read_bytes', 'disk.*.write_bytes',
            'disk.*.read_count', 'disk.*.write_count', 'disk.*.io_time',
            'disk.*.total', 'disk.*.used', 'disk.*.free', 'disk.*.used_pct',
        ]

    def collect(self, ctx: Optional[CollectContext] = None) -> List[MetricSample]:
        now = self._now()
        samples = []

        try:
            counters = psutil.disk_io_counters(perdisk=True) or {}
            for device, io in counters.items():
                dev = sanitize_name(device)
                samples.extend([
                    make_sample(now, self.id, f'disk.{dev}.read_bytes', io.read_bytes),
                    make_sample(now, self.id, f'disk.{dev}.write_bytes', io.write_bytes),
                    make_sample(now, self.id, f'disk.{dev}.read_count', io.read_count),
                    make_sample(now, self.id, f'disk.{dev}.write_count', io.write_count),
                    make_sample(now, self.id, f'disk.{dev}.io_time', getattr(io, 'busy_time', 0)),
                ])
        except (OSError, psutil.Error) as e:
            logger.debug(f"disk_io_counters failed: {e}")

        try:
            partitions = psutil.disk_partitions(all=False)
        except (OSError, psutil.Error) as e:
            logger.debug(f"disk_partitions failed: {e}")
            partitions = []

        for partition in partitions:
            if ctx is not None and ctx.cancelled:
                break
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except (OSError, psutil.Error):
                continue
            mount = sanitize_name(partition.mountpoint)
            samples.extend([
                make_sample(now, self.id, f'disk.{mount}.total', usage.total),
                make_sample(now, self.id, f'disk.{mount}.used', usage.used),
                make_sample(now, self.id, f'disk.{mount}.free', usage.free),
                make_sample(now, self.id, f'disk.{mount}.used_pct', usage.percent),
            ])

        return samples


def read_tcp_retransmits(path: str = '/proc/net/snmp') -> Optional[int]:
    """Cumulative TCP RetransSegs from /proc/net/snmp, None when unavailable."""
    try:
        with open(path, 'r') as f:
            tcp_lines = [line.split() for line in f if line.startswith('Tcp:')]
    except OSError:
        return None

    if len(tcp_lines) < 2:
        return None
    header, values = tcp_lines[0], tcp_lines[1]
    try:
        return int(values[header.index('RetransSegs')])
    except (ValueError, IndexError):
        return None


def read_tcp_queue_depths(paths=('/proc/net/tcp', '/proc/net/tcp6')) -> Tuple[int, int, int, int]:
    """
    Aggregate socket send/receive queue sizes.

    The fifth column of /proc/net/tcp is "tx_queue:rx_queue" in hex.

    Returns:
        (tx_total, rx_total, tx_max, rx_max)
    """
    tx_total = rx_total = tx_max = rx_max = 0
    for path in paths:
        try:
            with open(path, 'r') as f:
                next(f, None)
                for line in f:
                    fields = line.split()
                    if len(fields) < 5:
                        continue
                    parts = fields[4].split(':', 1)
                    if len(parts) != 2:
                        continue
                    try:
                        tx, rx = int(parts[0], 16), int(parts[1], 16)
                    except ValueError:
                        continue
                    tx_total += tx
                    rx_total += rx
                    tx_max = max(tx_max, tx)
                    rx_max = max(rx_max, rx)
        except OSError:
            continue
    return tx_total, rx_total, tx_max, rx_max


class NetworkCollector(Collector):
    """Per-interface counters and rates, TCP connection states."""

    id = 'network'
    name = 'Network'
    description = 'Network interface stats, TCP connection states'
    impact = ImpactLevel.LOW
    warning = 'May have slight overhead with many connections'

    _COUNTERS = ('bytes_sent', 'bytes_recv', 'packets_sent', 'packets_recv',
                 'errin', 'errout', 'dropin', 'dropout')
    _RATES = ('bytes_sent', 'bytes_recv', 'packets_sent', 'packets_recv')

    def __init__(self):
        self._prev_time: Optional[float] = None
        self._prev_counters: Dict[str, Dict[str, int]] = {}

    def metric_names(self) -> List[str]:
        names = []
        for scope in ('total', '*'):
            names.extend(f'net.{scope}.{c}' for c in self._COUNTERS)
            names.extend(f'net.{scope}.{r}_sec' for r in self._RATES)
        names.extend([
            'net.tcp.established', 'net.tcp.time_wait', 'net.tcp.close_wait',
            'net.tcp.retransmits',
            'net.tcp.tx_queue_total', 'net.tcp.rx_queue_total',
            'net.tcp.tx_queue_max', 'net.tcp.rx_queue_max',
        ])
        return names

    def collect(self, ctx: Optional[CollectContext] = None) -> List[MetricSample]:
        now = self._now()
        samples = []

        try:
            per_nic = psutil.net_io_counters(pernic=True) or {}
        except (OSError, psutil.Error) as e:
            logger.debug(f"net_io_counters failed: {e}")
            per_nic = None

        if per_nic is not None:
            samples.extend(self._interface_samples(now, per_nic))

        try:
            states = {psutil.CONN_ESTABLISHED: 0, psutil.CONN_TIME_WAIT: 0, psutil.CONN_CLOSE_WAIT: 0}
            for conn in psutil.net_connections(kind='tcp'):
                if conn.status in states:
                    states[conn.status] += 1
            samples.extend([
                make_sample(now, self.id, 'net.tcp.established', states[psutil.CONN_ESTABLISHED]),
                make_sample(now, self.id, 'net.tcp.time_wait', states[psutil.CONN_TIME_WAIT]),
                make_sample(now, self.id, 'net.tcp.close_wait', states[psutil.CONN_CLOSE_WAIT]),
            ])
        except (OSError, psutil.Error) as e:
            logger.debug(f"net_connections failed: {e}")

        if sys.platform.startswith('linux'):
            retransmits = read_tcp_retransmits()
            if retransmits is not None:
                samples.append(make_sample(now, self.id, 'net.tcp.retransmits', retransmits))

            tx_total, rx_total, tx_max, rx_max = read_tcp_queue_depths()
            samples.extend([
                make_sample(now, self.id, 'net.tcp.tx_queue_total', tx_total),
                make_sample(now, self.id, 'net.tcp.rx_queue_total', rx_total),
                make_sample(now, self.id, 'net.tcp.tx_queue_max', tx_max),
                make_sample(now, self.id, 'net.tcp.rx_queue_max', rx_max),
            ])

        return samples

    def _interface_samples(self, now: int, per_nic) -> List[MetricSample]:
        samples = []
        mono = time.monotonic()
        elapsed = mono - self._prev_time if self._prev_time is not None else 0.0

        current: Dict[str, Dict[str, int]] = {}
        totals = dict.fromkeys(self._COUNTERS, 0)

        for nic, io in per_nic.items():
            iface = nic.replace('.', '_')
            values = {c: getattr(io, c, 0) for c in self._COUNTERS}
            current[iface] = values

            for counter, value in values.items():
                samples.append(make_sample(now, self.id, f'net.{iface}.{counter}', value))
                totals[counter] += value

            prev = self._prev_counters.get(iface)
            if elapsed > 0 and prev is not None:
                for rate in self._RATES:
                    delta = max(values[rate] - prev[rate], 0)
                    samples.append(make_sample(now, self.id, f'net.{iface}.{rate}_sec', delta / elapsed))

        for counter, value in totals.items():
            samples.append(make_sample(now, self.id, f'net.total.{counter}', value))

        if elapsed > 0 and self._prev_counters:
            for rate in self._RATES:
                prev_total = sum(c[rate] for c in self._prev_counters.values())
                delta = max(totals[rate] - prev_total, 0)
                samples.append(make_sample(now, self.id, f'net.total.{rate}_sec', delta / elapsed))

        self._prev_counters = current
        self._prev_time = mono
        return samples


class ProcessCollector(Collector):
    """Process count plus top-N consumers by CPU, memory and I/O."""

    id = 'process'
    name = 'Process'
    description = 'Process count and top CPU/memory/IO consumers'
    impact = ImpactLevel.MEDIUM
    warning = 'Overhead increases with 5000+ processes'

    _ATTRS = ['pid', 'name', 'cpu_percent', 'memory_percent', 'io_counters']

    def __init__(self, top_n: int = DEFAULT_TOP_N):
        self._top_n = DEFAULT_TOP_N
        self._prev_time: Optional[float] = None
        self._prev_io: Dict[int, Tuple[int, int]] = {}
        self.set_top_n(top_n)

    @property
    def top_n(self) -> int:
        return self._top_n

    def set_top_n(self, n: int):
        """Set how many entries each top list reports, clamped to [1, 50]."""
        self._top_n = max(MIN_TOP_N, min(MAX_TOP_N, int(n)))

    def metric_names(self) -> List[str]:
        names = ['proc.total_count']
        names.extend(f'proc.top_cpu.*.{f}' for f in ('pid', 'name', 'cpu_pct', 'mem_pct'))
        names.extend(f'proc.top_mem.*.{f}' for f in ('pid', 'name', 'cpu_pct', 'mem_pct'))
        names.extend(f'proc.top_io.*.{f}' for f in ('pid', 'name', 'read_bps', 'write_bps'))
        names.extend(['proc.io.total_read_bps', 'proc.io.total_write_bps'])
        return names

    def collect(self, ctx: Optional[CollectContext] = None) -> List[MetricSample]:
        now = self._now()
        mono = time.monotonic()
        elapsed = mono - self._prev_time if self._prev_time is not None else 0.0

        infos = []
        current_io: Dict[int, Tuple[int, int]] = {}
        try:
            for proc in psutil.process_iter(self._ATTRS):
                if ctx is not None and ctx.cancelled:
                    break
                info = proc.info
                pid = info['pid']
                entry = {
                    'pid': pid,
                    'name': info.get('name') or '',
                    'cpu_pct': info.get('cpu_percent') or 0.0,
                    'mem_pct': info.get('memory_percent') or 0.0,
                    'read_bps': 0.0,
                    'write_bps': 0.0,
                }

                io = info.get('io_counters')
                if io is not None:
                    current_io[pid] = (io.read_bytes, io.write_bytes)
                    prev = self._prev_io.get(pid)
                    if elapsed > 0 and prev is not None:
                        if io.read_bytes >= prev[0]:
                            entry['read_bps'] = (io.read_bytes - prev[0]) / elapsed
                        if io.write_bytes >= prev[1]:
                            entry['write_bps'] = (io.write_bytes - prev[1]) / elapsed

                infos.append(entry)
        except (OSError, psutil.Error) as e:
            raise CollectionError(f"process listing failed: {e}") from e

        self._prev_io = current_io
        self._prev_time = mono

        samples = [make_sample(now, self.id, 'proc.total_count', len(infos))]
        top_n = self._top_n

        by_cpu = sorted(infos, key=lambda p: p['cpu_pct'], reverse=True)[:top_n]
        for i, p in enumerate(by_cpu):
            samples.extend(self._entry_samples(now, 'top_cpu', i, p, ('cpu_pct', 'mem_pct')))

        by_mem = sorted(infos, key=lambda p: p['mem_pct'], reverse=True)[:top_n]
        for i, p in enumerate(by_mem):
            samples.extend(self._entry_samples(now, 'top_mem', i, p, ('cpu_pct', 'mem_pct')))

        samples.extend([
            make_sample(now, self.id, 'proc.io.total_read_bps', sum(p['read_bps'] for p in infos)),
            make_sample(now, self.id, 'proc.io.total_write_bps', sum(p['write_bps'] for p in infos)),
        ])
        by_io = sorted(infos, key=lambda p: p['read_bps'] + p['write_bps'], reverse=True)[:top_n]
        for i, p in enumerate(by_io):
            samples.extend(self._entry_samples(now, 'top_io', i, p, ('read_bps', 'write_bps')))

        return samples

    def _entry_samples(self, now: int, group: str, rank: int, entry: dict, fields) -> List[MetricSample]:
        prefix = f'proc.{group}.{rank}'
        samples = [
            make_sample(now, self.id, f'{prefix}.pid', entry['pid']),
            make_sample(now, self.id, f'{prefix}.name', 0, labels=entry['name']),
        ]
        samples.extend(make_sample(now, self.id, f'{prefix}.{f}', entry[f]) for f in fields)
        return samples


def read_proc_stat_counts(path: str = '/proc/stat') -> Dict[str, int]:
    """procs_running / procs_blocked lines of /proc/stat."""
    counts = {}
    try:
        with open(path, 'r') as f:
            for line in f:
                key, _, value = line.partition(' ')
                if key in ('procs_running', 'procs_blocked'):
                    try:
                        counts[key] = int(value.strip())
                    except ValueError:
                        continue
    except OSError:
        pass
    return counts


class KernelCollector(Collector):
    """Runnable and I/O-blocked task counts, uptime."""

    id = 'kernel'
    name = 'Kernel'
    description = 'Kernel stats: procs running/blocked, uptime'
    impact = ImpactLevel.NONE

    def metric_names(self) -> List[str]:
        return ['kernel.procs_running', 'kernel.procs_blocked', 'kernel.uptime_sec']

    def collect(self, ctx: Optional[CollectContext] = None) -> List[MetricSample]:
        now = self._now()
        samples = []

        if sys.platform.startswith('linux'):
            counts = read_proc_stat_counts()
            for key in ('procs_running', 'procs_blocked'):
                if key in counts:
                    samples.append(make_sample(now, self.id, f'kernel.{key}', counts[key]))

        try:
            samples.append(make_sample(now, self.id, 'kernel.uptime_sec', time.time() - psutil.boot_time()))
        except (OSError, psutil.Error) as e:
            logger.debug(f"boot_time failed: {e}")

        return samples


def _parse_float(value: str) -> float:
    try:
        return float(value.strip())
    except ValueError:
        # nvidia-smi reports "[N/A]" for unsupported fields
        return 0.0


class GPUCollector(Collector):
    """NVIDIA GPU stats through nvidia-smi."""

    id = 'gpu'
    name = 'GPU (NVIDIA)'
    description = 'NVIDIA GPU utilization, memory, temperature, power via nvidia-smi'
    impact = ImpactLevel.MEDIUM
    warning = 'Runs nvidia-smi subprocess; requires NVIDIA drivers'

    QUERY = 'index,utilization.gpu,utilization.memory,temperature.gpu,memory.used,memory.total,power.draw'
    DEFAULT_TIMEOUT = 10.0

    def metric_names(self) -> List[str]:
        return [
            'gpu.*.util_pct', 'gpu.*.mem_util_pct', 'gpu.*.temp_c',
            'gpu.*.mem_used', 'gpu.*.mem_total', 'gpu.*.power_watts',
        ]

    def collect(self, ctx: Optional[CollectContext] = None) -> List[MetricSample]:
        now = self._now()

        path = shutil.which('nvidia-smi')
        if path is None:
            return []

        timeout = ctx.timeout if ctx is not None and ctx.timeout else self.DEFAULT_TIMEOUT
        try:
            result = subprocess.run(
                [path, f'--query-gpu={self.QUERY}', '--format=csv,noheader,nounits'],
                capture_output=True,
                text=True,
                timeout=timeout,
                check=True
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            raise CollectionError(f"nvidia-smi: {e}") from e

        return self.parse_output(now, result.stdout)

    def parse_output(self, now: int, output: str) -> List[MetricSample]:
        """Convert nvidia-smi CSV rows into samples (MiB values become bytes)."""
        samples = []
        for line in output.splitlines():
            fields = line.split(', ')
            if len(fields) < 7:
                continue
            idx = fields[0].strip()
            mib = 1024 * 1024
            samples.extend([
                make_sample(now, self.id, f'gpu.{idx}.util_pct', _parse_float(fields[1])),
                make_sample(now, self.id, f'gpu.{idx}.mem_util_pct', _parse_float(fields[2])),
                make_sample(now, self.id, f'gpu.{idx}.temp_c', _parse_float(fields[3])),
                make_sample(now, self.id, f'gpu.{idx}.mem_used', _parse_float(fields[4]) * mib),
                make_sample(now, self.id, f'gpu.{idx}.mem_total', _parse_float(fields[5]) * mib),
                make_sample(now, self.id, f'gpu.{idx}.power_watts', _parse_float(fields[6])),
            ])
        return samples


def default_collectors() -> List[Collector]:
    """Fresh instances of every built-in collector."""
    return [
        CPUCollector(),
        MemoryCollector(),
        DiskCollector(),
        NetworkCollector(),
        ProcessCollector(),
        KernelCollector(),
        GPUCollector(),
    ]
