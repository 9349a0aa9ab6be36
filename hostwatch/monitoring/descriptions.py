"""
Human-readable metric descriptions.

Keys are metric name patterns where "*" stands for one variable segment
(core index, device, interface, rank). Each entry carries an English text,
a Korean text and a display unit.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any


@dataclass(frozen=True)
class MetricDescription:
    description: str = ""
    description_ko: str = ""
    unit: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


EMPTY_DESCRIPTION = MetricDescription()


def _d(description: str, description_ko: str, unit: str) -> MetricDescription:
    return MetricDescription(description, description_ko, unit)


METRIC_DESCRIPTIONS: Dict[str, MetricDescription] = {
    # CPU
    'cpu.total.usage': _d(
        'Overall CPU busy percentage across all cores (100% minus idle). Sustained values above 80% suggest CPU saturation.',
        '전체 코어 기준 CPU 사용률(100% - 유휴). 80% 이상이 지속되면 CPU 포화를 의심해야 합니다.',
        '%'),
    'cpu.total.user': _d(
        'Share of CPU time spent running user-space code such as applications and databases.',
        '애플리케이션, 데이터베이스 등 사용자 공간 코드 실행에 쓰인 CPU 시간 비율.',
        '%'),
    'cpu.total.system': _d(
        'Share of CPU time spent in the kernel (system calls, I/O, scheduling). High values point at heavy I/O or syscall load.',
        '커널(시스템 콜, I/O, 스케줄링)에서 소비된 CPU 시간 비율. 높으면 I/O 또는 시스템 콜 부하를 의미합니다.',
        '%'),
    'cpu.total.idle': _d(
        'Share of CPU time with nothing to run.',
        '실행할 작업이 없어 유휴 상태였던 CPU 시간 비율.',
        '%'),
    'cpu.total.iowait': _d(
        'Share of CPU time idle while waiting for disk I/O to complete. Values above 20% usually mean storage is the bottleneck.',
        '디스크 I/O 완료를 기다리며 유휴 상태였던 CPU 시간 비율. 20% 이상이면 스토리지 병목일 가능성이 높습니다.',
        '%'),
    'cpu.core.*.usage': _d(
        'Busy percentage of a single core. One pegged core with others idle indicates a single-threaded hotspot.',
        '개별 코어의 사용률. 한 코어만 가득 차 있으면 단일 스레드 병목을 의미합니다.',
        '%'),
    'cpu.load.1': _d(
        'Average number of runnable (and on Linux, uninterruptible) tasks over the last minute. Compare against the core count.',
        '최근 1분간 실행 대기 중인 평균 작업 수. 코어 수와 비교해서 판단합니다.',
        ''),
    'cpu.load.5': _d(
        'Load average over the last 5 minutes.',
        '최근 5분간의 평균 부하.',
        ''),
    'cpu.load.15': _d(
        'Load average over the last 15 minutes. Rising 15-minute load shows a sustained trend.',
        '최근 15분간의 평균 부하. 15분 부하가 오르면 지속적인 부하 증가 추세입니다.',
        ''),
    'cpu.context_switches': _d(
        'Cumulative number of context switches since boot.',
        '부팅 이후 누적 컨텍스트 스위치 수.',
        'count'),
    'cpu.interrupts': _d(
        'Cumulative number of hardware interrupts since boot.',
        '부팅 이후 누적 하드웨어 인터럽트 수.',
        'count'),

    # Memory
    'mem.total': _d('Total physical memory.', '전체 물리 메모리.', 'bytes'),
    'mem.used': _d(
        'Memory in use by processes, excluding reclaimable cache and buffers.',
        '회수 가능한 캐시와 버퍼를 제외하고 프로세스가 사용 중인 메모리.',
        'bytes'),
    'mem.free': _d(
        'Completely unused memory. Low values are normal since the kernel uses spare memory as cache.',
        '전혀 사용되지 않는 메모리. 커널이 여유 메모리를 캐시로 쓰므로 낮은 값은 정상입니다.',
        'bytes'),
    'mem.available': _d(
        'Memory available for new allocations without swapping, including reclaimable cache.',
        '스왑 없이 새로 할당할 수 있는 메모리(회수 가능한 캐시 포함).',
        'bytes'),
    'mem.cached': _d('Memory used by the page cache.', '페이지 캐시가 사용 중인 메모리.', 'bytes'),
    'mem.buffers': _d('Memory used for block device buffers.', '블록 장치 버퍼에 사용된 메모리.', 'bytes'),
    'mem.used_pct': _d(
        'Percentage of memory in use. Above 90% the system is close to swapping or OOM kills.',
        '메모리 사용률. 90%를 넘으면 스왑이나 OOM 종료가 임박한 상태입니다.',
        '%'),
    'mem.swap.total': _d('Total swap space.', '전체 스왑 공간.', 'bytes'),
    'mem.swap.used': _d(
        'Swap space in use. Growing swap usage means physical memory is insufficient.',
        '사용 중인 스왑 공간. 계속 증가하면 물리 메모리가 부족하다는 뜻입니다.',
        'bytes'),
    'mem.swap.free': _d('Unused swap space.', '사용되지 않은 스왑 공간.', 'bytes'),

    # Disk
    'disk.*.total': _d('Filesystem size.', '파일시스템 전체 크기.', 'bytes'),
    'disk.*.used': _d('Filesystem space in use.', '파일시스템 사용량.', 'bytes'),
    'disk.*.free': _d('Filesystem space available.', '파일시스템 여유 공간.', 'bytes'),
    'disk.*.used_pct': _d(
        'Filesystem usage percentage. A full filesystem causes write failures, so act above 85%.',
        '파일시스템 사용률. 가득 차면 쓰기 실패가 발생하므로 85% 이상이면 조치가 필요합니다.',
        '%'),
    'disk.*.read_bytes': _d('Cumulative bytes read from the device.', '장치에서 읽은 누적 바이트.', 'bytes'),
    'disk.*.write_bytes': _d('Cumulative bytes written to the device.', '장치에 쓴 누적 바이트.', 'bytes'),
    'disk.*.read_count': _d('Cumulative read operations on the device.', '장치의 누적 읽기 작업 수.', 'count'),
    'disk.*.write_count': _d('Cumulative write operations on the device.', '장치의 누적 쓰기 작업 수.', 'count'),
    'disk.*.io_time': _d(
        'Cumulative time the device spent doing I/O.',
        '장치가 I/O를 수행한 누적 시간.',
        'ms'),

    # Network
    'net.*.bytes_sent': _d('Cumulative bytes sent.', '누적 송신 바이트.', 'bytes'),
    'net.*.bytes_recv': _d('Cumulative bytes received.', '누적 수신 바이트.', 'bytes'),
    'net.*.packets_sent': _d('Cumulative packets sent.', '누적 송신 패킷 수.', 'count'),
    'net.*.packets_recv': _d('Cumulative packets received.', '누적 수신 패킷 수.', 'count'),
    'net.*.errin': _d(
        'Cumulative receive errors. Increases usually mean cabling, driver or duplex problems.',
        '누적 수신 오류 수. 증가하면 케이블, 드라이버, 듀플렉스 문제일 수 있습니다.',
        'count'),
    'net.*.errout': _d('Cumulative transmit errors.', '누적 송신 오류 수.', 'count'),
    'net.*.dropin': _d(
        'Cumulative inbound packets dropped, often because receive buffers were full.',
        '누적 수신 드롭 패킷 수. 주로 수신 버퍼가 가득 찼을 때 발생합니다.',
        'count'),
    'net.*.dropout': _d('Cumulative outbound packets dropped.', '누적 송신 드롭 패킷 수.', 'count'),
    'net.*.bytes_sent_sec': _d('Transmit throughput.', '송신 처리량.', 'bytes/s'),
    'net.*.bytes_recv_sec': _d('Receive throughput.', '수신 처리량.', 'bytes/s'),
    'net.*.packets_sent_sec': _d('Packets sent per second.', '초당 송신 패킷 수.', 'pps'),
    'net.*.packets_recv_sec': _d('Packets received per second.', '초당 수신 패킷 수.', 'pps'),
    'net.tcp.established': _d('Open TCP connections.', '연결된 TCP 연결 수.', 'count'),
    'net.tcp.time_wait': _d(
        'TCP sockets in TIME_WAIT. Very high counts can exhaust ephemeral ports.',
        'TIME_WAIT 상태의 TCP 소켓 수. 너무 많으면 임시 포트가 고갈될 수 있습니다.',
        'count'),
    'net.tcp.close_wait': _d(
        'TCP sockets in CLOSE_WAIT. A growing count points at an application not closing sockets.',
        'CLOSE_WAIT 상태의 TCP 소켓 수. 계속 늘면 애플리케이션이 소켓을 닫지 않는 것입니다.',
        'count'),
    'net.tcp.retransmits': _d(
        'Cumulative TCP segments retransmitted, a sign of packet loss or congestion.',
        '누적 TCP 재전송 세그먼트 수. 패킷 손실이나 혼잡의 신호입니다.',
        'count'),
    'net.tcp.tx_queue_total': _d('Bytes queued for sending across all TCP sockets.', '모든 TCP 소켓의 송신 대기 바이트 합계.', 'bytes'),
    'net.tcp.rx_queue_total': _d(
        'Bytes received but not yet read across all TCP sockets.',
        '모든 TCP 소켓에서 수신되었지만 아직 읽히지 않은 바이트 합계.',
        'bytes'),
    'net.tcp.tx_queue_max': _d('Largest send queue of a single TCP socket.', '단일 TCP 소켓의 최대 송신 대기 바이트.', 'bytes'),
    'net.tcp.rx_queue_max': _d('Largest receive queue of a single TCP socket.', '단일 TCP 소켓의 최대 수신 대기 바이트.', 'bytes'),

    # Process
    'proc.total_count': _d('Number of processes.', '전체 프로세스 수.', 'count'),
    'proc.top_cpu.*.pid': _d('PID of a top CPU consumer.', 'CPU 상위 프로세스의 PID.', ''),
    'proc.top_cpu.*.name': _d('Name of a top CPU consumer (in labels).', 'CPU 상위 프로세스 이름(labels 필드).', ''),
    'proc.top_cpu.*.cpu_pct': _d('CPU usage of a top CPU consumer.', 'CPU 상위 프로세스의 CPU 사용률.', '%'),
    'proc.top_cpu.*.mem_pct': _d('Memory usage of a top CPU consumer.', 'CPU 상위 프로세스의 메모리 사용률.', '%'),
    'proc.top_mem.*.pid': _d('PID of a top memory consumer.', '메모리 상위 프로세스의 PID.', ''),
    'proc.top_mem.*.name': _d('Name of a top memory consumer (in labels).', '메모리 상위 프로세스 이름(labels 필드).', ''),
    'proc.top_mem.*.cpu_pct': _d('CPU usage of a top memory consumer.', '메모리 상위 프로세스의 CPU 사용률.', '%'),
    'proc.top_mem.*.mem_pct': _d('Memory usage of a top memory consumer.', '메모리 상위 프로세스의 메모리 사용률.', '%'),
    'proc.top_io.*.pid': _d('PID of a top I/O consumer.', 'I/O 상위 프로세스의 PID.', ''),
    'proc.top_io.*.name': _d('Name of a top I/O consumer (in labels).', 'I/O 상위 프로세스 이름(labels 필드).', ''),
    'proc.top_io.*.read_bps': _d('Read rate of a top I/O consumer.', 'I/O 상위 프로세스의 읽기 속도.', 'bytes/s'),
    'proc.top_io.*.write_bps': _d('Write rate of a top I/O consumer.', 'I/O 상위 프로세스의 쓰기 속도.', 'bytes/s'),
    'proc.io.total_read_bps': _d('Read rate summed over all processes.', '전체 프로세스의 읽기 속도 합계.', 'bytes/s'),
    'proc.io.total_write_bps': _d('Write rate summed over all processes.', '전체 프로세스의 쓰기 속도 합계.', 'bytes/s'),

    # Kernel
    'kernel.procs_running': _d('Tasks currently runnable.', '현재 실행 가능한 작업 수.', 'count'),
    'kernel.procs_blocked': _d(
        'Tasks blocked on I/O. Persistent non-zero values indicate storage or NFS stalls.',
        'I/O 대기로 블록된 작업 수. 계속 0이 아니면 스토리지나 NFS 지연을 의미합니다.',
        'count'),
    'kernel.uptime_sec': _d('Time since boot.', '부팅 이후 경과 시간.', 's'),

    # GPU
    'gpu.*.util_pct': _d('GPU compute utilization.', 'GPU 연산 사용률.', '%'),
    'gpu.*.mem_util_pct': _d('GPU memory controller utilization.', 'GPU 메모리 컨트롤러 사용률.', '%'),
    'gpu.*.temp_c': _d(
        'GPU core temperature. Sustained values above 85C may cause thermal throttling.',
        'GPU 코어 온도. 85도 이상이 지속되면 스로틀링이 발생할 수 있습니다.',
        'C'),
    'gpu.*.mem_used': _d('GPU memory in use.', '사용 중인 GPU 메모리.', 'bytes'),
    'gpu.*.mem_total': _d('Total GPU memory.', '전체 GPU 메모리.', 'bytes'),
    'gpu.*.power_watts': _d('GPU power draw.', 'GPU 전력 소비.', 'W'),
}


def lookup_metric_description(name: str) -> MetricDescription:
    """
    Find the best description for a concrete metric name.

    Tries an exact match, then each single segment replaced by "*" (last
    segment first), then every contiguous run of segments replaced by "*".

    Args:
        name: Concrete metric name, e.g. ``cpu.core.3.usage``

    Returns:
        Matching description, or an empty one when nothing matches
    """
    found = METRIC_DESCRIPTIONS.get(name)
    if found is not None:
        return found

    parts = name.split('.')
    for i in range(len(parts) - 1, -1, -1):
        trial = parts[:i] + ['*'] + parts[i + 1:]
        found = METRIC_DESCRIPTIONS.get('.'.join(trial))
        if found is not None:
            return found

    for i in range(len(parts)):
        for j in range(i, len(parts)):
            trial = parts[:i] + ['*'] * (j - i + 1) + parts[j + 1:]
            found = METRIC_DESCRIPTIONS.get('.'.join(trial))
            if found is not None:
                return found

    return EMPTY_DESCRIPTION
