import asyncio
import cv2
from ministry_scanner.analytics.growth import GrowthMetrics
from ministry_scanner.config.settings import PROFILE_SOURCE, SCAN_INTERVAL
from ministry_scanner.core.capture import CaptureSession, CaptureState, RETRYABLE_STATES
from ministry_scanner.core.payload import PersonType, ScanPayload
from ministry_scanner.database.db_manager import DatabaseManager
from ministry_scanner.services.actions import ActionUnavailableError, handler_for
from ministry_scanner.services.resolver import ResolutionStatus
from ministry_scanner.services.scan_service import ScanService
from ministry_scanner.services.stores import ProfileStoreError, http_stores, sqlite_stores

WINDOW_NAME = "QR Scanner"
ESC_KEY = 27
SWITCH_KEY = ord('s')


class PreviewWindow:
    """
    OpenCV window showing the live camera feed while scanning.
    Remembers the last key pressed so the scan loop can react to it.
    """

    def __init__(self, name: str = WINDOW_NAME):
        self.name = name
        self.last_key = None
        self._open = False

    def show(self, frame):
        preview = frame.copy()
        h, w = preview.shape[:2]
        cv2.rectangle(preview, (10, 10), (w - 10, h - 10), (0, 255, 255), 2)
        cv2.putText(preview, "Scanning for QR code...", (20, 40),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 255, 255), 2)
        cv2.putText(preview, "ESC: stop   S: switch camera", (20, h - 25),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1)
        cv2.imshow(self.name, preview)
        self._open = True

        key = cv2.waitKey(1) & 0xFF
        if key != 0xFF:
            self.last_key = key

    def take_key(self):
        key, self.last_key = self.last_key, None
        return key

    def clear(self):
        if self._open:
            cv2.destroyWindow(self.name)
            cv2.waitKey(1)
            self._open = False


def initialize_database():
    """
    Initialize database if it doesn't exist.
    """
    db_manager = DatabaseManager()

    try:
        if db_manager.ensure_schema():
            print(f"Database created at {db_manager.db_path}")
        else:
            print("Database connection verified.")
    except Exception as e:
        print(f"Warning: Database initialization failed: {e}")
    return db_manager


def pause():
    print("\nPress Enter to return to menu...")
    input()


def ask_person_type():
    value = input("Type (member/minister): ").strip().lower()
    try:
        return PersonType(value)
    except ValueError:
        print("Invalid type. Enter 'member' or 'minister'.")
        return None


def ask_id():
    value = input("Enter ID: ").strip()
    if not value.isdigit() or int(value) <= 0:
        print("Invalid ID.")
        return None
    return int(value)


def print_resolution(resolution):
    if resolution is None:
        return
    print()
    print("-" * 60)
    if resolution.status == ResolutionStatus.FOUND:
        profile = resolution.profile
        print(f"{profile.type.label}: {profile.full_name} ({profile.initials})")
        for label, value in profile.summary().items():
            print(f"  {label}: {value}")
    elif resolution.status == ResolutionStatus.ABSENT:
        print(f"{resolution.payload.type.label} not found (ID {resolution.payload.id}).")
    elif resolution.status == ResolutionStatus.FAILED:
        print(f"Failed to load {resolution.display_name}: {resolution.error}")
    print("-" * 60)


async def camera_scan(service: ScanService, preview: PreviewWindow):
    """
    Scan with the camera until a code is found or the user presses ESC.
    """
    session = service.session
    await session.start()

    while True:
        if session.state in RETRYABLE_STATES:
            print(f"Camera error: {session.error}")
            again = input("Retry? (yes/no): ").strip().lower()
            if again not in ['yes', 'y']:
                await session.stop()
                return None
            await session.retry()
            continue

        if session.state != CaptureState.PLAYING:
            return None

        print("Camera started. Show a QR code. Press ESC to stop, S to switch camera.")
        scan_task = asyncio.ensure_future(session.scan())
        while not scan_task.done():
            await asyncio.sleep(SCAN_INTERVAL)
            key = preview.take_key()
            if key == ESC_KEY:
                await session.stop()
            elif key == SWITCH_KEY:
                if await session.switch_device():
                    print(f"Switched to camera {session.device_id}")
                else:
                    print("No other camera available.")

        found = scan_task.result()
        if found is not None:
            print(f"\n✓ QR code scanned: {found}")
            return await service.resolver.resolve(found)
        if session.state == CaptureState.IDLE:
            print("Scanning stopped.")
            return None


async def edit_profile(service: ScanService):
    seed = service.actions.edit()
    print("\nEdit profile (press Enter to keep the current value)")
    changes = {}
    for name, current in seed.items():
        label = name.replace('_', ' ').capitalize()
        value = input(f"  {label} [{current if current is not None else ''}]: ").strip()
        if value:
            changes[name] = int(value) if isinstance(current, int) and value.isdigit() else value

    if not changes:
        print("No changes.")
        return
    try:
        resolution = await service.actions.submit_edit(changes)
        print("Profile updated.")
        print_resolution(resolution)
    except ProfileStoreError as e:
        print(f"Error: {e}")


async def action_menu(service: ScanService):
    """
    Actions on the current scan result.
    """
    actions = service.actions
    while service.resolver.current is not None:
        resolution = service.resolver.current
        print_resolution(resolution)
        print("1. View details")
        print("2. Edit profile")
        print("3. Export PDF")
        print("4. Generate QR code")
        print("5. Retry lookup")
        print("6. Scan another")
        choice = input("Select option: ").strip()

        try:
            if choice == "1":
                details = actions.view()
                print(f"\n{details.type_label.upper()}: {details.name}")
                for section, values in details.sections.items():
                    present = {label: value for label, value in values.items() if value not in (None, "")}
                    if not present:
                        continue
                    print(f"\n  {section}")
                    for label, value in present.items():
                        print(f"    {label}: {value}")
                pause()
            elif choice == "2":
                await edit_profile(service)
            elif choice == "3":
                path = actions.export_pdf()
                print(f"PDF saved: {path}")
            elif choice == "4":
                payload_text, path = actions.regenerate_qr()
                print(f"QR code saved: {path}")
                print(f"Payload: {payload_text}")
            elif choice == "5":
                await service.resolver.refetch()
            elif choice == "6":
                await actions.reset()
            else:
                print("Invalid option. Please try again.")
        except ActionUnavailableError as e:
            print(f"Not available: {e}")


async def register_person(db_manager: DatabaseManager, service: ScanService):
    person_type = ask_person_type()
    if person_type is None:
        return

    first_name = input("First name (required): ").strip()
    last_name = input("Last name (required): ").strip()
    if not first_name or not last_name:
        print("Error: First and last name are required.")
        return
    email = input("Email (optional): ").strip() or None

    model = handler_for(person_type).model(db_manager)
    try:
        person_id = model.create(first_name, last_name, email=email)
    except Exception as e:
        print(f"Error: {e}")
        return

    _, path = service.actions.qr_generator.generate(person_id, person_type, f"{first_name} {last_name}")
    print(f"\n✓ {person_type.label} registered with ID {person_id}")
    print(f"QR code saved: {path}")


def show_growth(db_manager: DatabaseManager):
    metrics = GrowthMetrics(db_manager)
    growth = metrics.daily_growth(days=30)
    summary = metrics.summary(days=30)
    active = growth[(growth['members'] > 0) | (growth['ministers'] > 0)]

    print(f"\nTotal members: {summary['total_members']}")
    print(f"Total ministers: {summary['total_ministers']}")
    print(f"New in the {summary['period'].lower()}: "
          f"{int(growth['members'].sum())} member(s), {int(growth['ministers'].sum())} minister(s)")
    if not active.empty:
        print()
        print(active[['date_formatted', 'members', 'ministers']].to_string(index=False))


async def run():
    db_manager = initialize_database()
    stores = http_stores() if PROFILE_SOURCE == "http" else sqlite_stores(db_manager)

    preview = PreviewWindow()
    service = ScanService(stores, session=CaptureSession(frame_sink=preview))

    try:
        while True:
            print()
            print("=" * 60)
            print("MINISTRY QR SCANNER - MAIN MENU")
            print("=" * 60)
            print("1. Scan QR code with camera")
            print("2. Scan QR code from image file")
            print("3. Enter QR code text")
            print("4. Search by name")
            print("5. Generate QR code for a person")
            print("6. Register member or minister")
            print("7. Growth summary")
            print("8. Exit")
            print("=" * 60)
            choice = input("Select option: ").strip()

            if choice == "1":
                resolution = await camera_scan(service, preview)
                if resolution is not None:
                    await action_menu(service)

            elif choice == "2":
                path = input("Image path: ").strip()
                outcome = await service.scan_upload(path)
                if outcome.ok:
                    await action_menu(service)
                else:
                    print(outcome.notice)
                    pause()

            elif choice == "3":
                text = input("QR code text: ")
                outcome = await service.scan_text(text)
                if outcome.ok:
                    await action_menu(service)
                else:
                    print(outcome.notice)
                    pause()

            elif choice == "4":
                query = input("Name (at least 2 characters): ").strip()
                hits = await service.search(query)
                for person_type, error in service.directory.errors.items():
                    print(f"Error searching {person_type.value}s: {error}")
                if not hits:
                    print("No matches.")
                    pause()
                    continue
                for number, hit in enumerate(hits, start=1):
                    print(f"{number}. {hit}")
                selection = input("Select a person (or press Enter to cancel): ").strip()
                if selection.isdigit() and 1 <= int(selection) <= len(hits):
                    await service.select_search_hit(hits[int(selection) - 1])
                    await action_menu(service)

            elif choice == "5":
                person_type = ask_person_type()
                person_id = ask_id() if person_type else None
                if person_id is None:
                    pause()
                    continue
                await service.resolver.resolve(ScanPayload(person_id, person_type))
                payload_text, path = service.actions.regenerate_qr()
                print(f"QR code saved: {path}")
                print(f"Payload: {payload_text}")
                service.resolver.clear()
                pause()

            elif choice == "6":
                await register_person(db_manager, service)
                pause()

            elif choice == "7":
                show_growth(db_manager)
                pause()

            elif choice == "8":
                print("\nExiting application...")
                break

            else:
                print("Invalid option. Please try again.")
                print("\nPress Enter to continue...")
                input()
    finally:
        await service.close()
        for store in stores.values():
            if hasattr(store, "close"):
                await store.close()
        cv2.destroyAllWindows()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
