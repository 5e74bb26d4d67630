import logging

import customtkinter as ctk
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from matplotlib.figure import Figure

from fuel_settings import parse_fuel_multiplier, parse_lap_offset

logger = logging.getLogger(__name__)

ctk.set_appearance_mode("Dark")
ctk.set_default_color_theme("blue")

HELP_LAP_OFFSET = "Adds this number of laps to the race length during fuel calculation."
HELP_FUEL_MULT = "Sets the multiplier to the fuel rate used during the calculation for fuel needed."
HELP_GREEN = ("When enabled, only laps done in a race under green flag conditions are logged. "
              "Useful if you expect a lot of cautions.")
HELP_AUTO_FUEL = ("If enabled, will automatically set the pitstop fuel amount when you cross the "
                  "yellow cones. If disabled, will only monitor.")

# (status key, caption, format)
OUTPUT_ROWS = [
    ('fuel_last_lap', "Fuel Last Lap", "{:.2f}"),
    ('fuel_per_lap', "Fuel Per Lap", "{:.2f}"),
    ('estimated_laps', "Estimated Laps", "{}"),
    ('estimated_stops', "Estimated Stops", "{}"),
    ('max_fuel', "Max Fuel", "{:.2f}"),
    ('total_fuel_required', "Total Fuel Required", "{:.2f}"),
    ('fuel_to_add', "Fuel To Add", "{}"),
]


class MainWindow(ctk.CTk):
    """
    Presentation Layer for the fuel calculator.
    """
    def __init__(self, connector, calculator, settings_manager):
        super().__init__()

        self.connector = connector
        self.calculator = calculator
        self.settings_manager = settings_manager
        self.last_chart_laps = -1

        # Window Setup
        self.title("iR Fuel Calculator")
        self.geometry("520x720")
        self.attributes("-topmost", True) # Always on Top
        self.protocol("WM_DELETE_WINDOW", self.on_close)

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)

        self._setup_outputs()
        self._setup_settings()
        self._setup_chart()

        self.lbl_status = ctk.CTkLabel(self, text="STATUS: Starting...", font=("Arial", 12))
        self.lbl_status.grid(row=3, column=0, sticky="w", padx=10, pady=(0, 10))

        self.refresh_labels()

        # Start Loop
        self.after(16, self.update_cycle)

    def _setup_outputs(self):
        frame = ctk.CTkFrame(self)
        frame.grid(row=0, column=0, sticky="ew", padx=10, pady=10)
        frame.grid_columnconfigure(1, weight=1)

        self.output_labels = {}
        for row, (key, caption, _) in enumerate(OUTPUT_ROWS):
            ctk.CTkLabel(frame, text=caption, font=("Arial", 14)).grid(row=row, column=0, sticky="w", padx=10, pady=2)
            value = ctk.CTkLabel(frame, text="-", font=("Consolas", 16, "bold"))
            value.grid(row=row, column=1, sticky="e", padx=10, pady=2)
            self.output_labels[key] = value

    def _setup_settings(self):
        settings = self.calculator.settings
        frame = ctk.CTkFrame(self)
        frame.grid(row=1, column=0, sticky="ew", padx=10, pady=(0, 10))
        frame.grid_columnconfigure(1, weight=1)

        # Green flag only
        self.var_green = ctk.BooleanVar(value=settings.green_flag_only)
        self.cb_green = ctk.CTkCheckBox(frame, text="Only Green Flag Laps", variable=self.var_green,
                                        command=self.on_green_toggled)
        self.cb_green.grid(row=0, column=0, columnspan=2, sticky="w", padx=10, pady=(10, 0))
        self._help(frame, HELP_GREEN, row=1)

        # Lap offset
        ctk.CTkLabel(frame, text="Lap Offset").grid(row=2, column=0, sticky="w", padx=10)
        self.entry_offset = ctk.CTkEntry(frame, width=80)
        self.entry_offset.insert(0, str(settings.lap_offset))
        self.entry_offset.grid(row=2, column=1, sticky="e", padx=10)
        self.entry_offset.bind("<Return>", self.on_offset_changed)
        self.entry_offset.bind("<FocusOut>", self.on_offset_changed)
        self._help(frame, HELP_LAP_OFFSET, row=3)

        # Fuel multiplier
        ctk.CTkLabel(frame, text="Fuel Multiplier").grid(row=4, column=0, sticky="w", padx=10)
        self.entry_mult = ctk.CTkEntry(frame, width=80)
        self.entry_mult.insert(0, str(settings.fuel_multiplier))
        self.entry_mult.grid(row=4, column=1, sticky="e", padx=10)
        self.entry_mult.bind("<Return>", self.on_mult_changed)
        self.entry_mult.bind("<FocusOut>", self.on_mult_changed)
        self._help(frame, HELP_FUEL_MULT, row=5)

        # Auto fuel
        self.btn_auto_fuel = ctk.CTkButton(frame, text=self.calculator.auto_fuel_label(),
                                           command=self.on_auto_fuel_clicked)
        self.btn_auto_fuel.grid(row=6, column=0, columnspan=2, sticky="ew", padx=10, pady=(10, 0))
        self._help(frame, HELP_AUTO_FUEL, row=7)

    def _help(self, parent, text, row):
        lbl = ctk.CTkLabel(parent, text=text, font=("Arial", 10), text_color="gray", wraplength=460, justify="left")
        lbl.grid(row=row, column=0, columnspan=2, sticky="w", padx=10, pady=(0, 6))

    def _setup_chart(self):
        self.figure = Figure(figsize=(5, 2.2), dpi=100)
        self.figure.patch.set_facecolor("#2b2b2b")
        self.ax = self.figure.add_subplot(111)
        self.canvas = FigureCanvasTkAgg(self.figure, master=self)
        self.canvas.get_tk_widget().grid(row=2, column=0, sticky="nsew", padx=10, pady=(0, 10))
        self.draw_chart()

    # --- Settings callbacks ---

    def on_green_toggled(self):
        self.calculator.settings.green_flag_only = bool(self.var_green.get())
        logger.debug("Green flag only: %s", self.calculator.settings.green_flag_only)

    def on_offset_changed(self, event=None):
        settings = self.calculator.settings
        try:
            settings.lap_offset = parse_lap_offset(self.entry_offset.get())
        except ValueError:
            # Revert to last good value
            self.entry_offset.delete(0, "end")
            self.entry_offset.insert(0, str(settings.lap_offset))

    def on_mult_changed(self, event=None):
        settings = self.calculator.settings
        try:
            settings.fuel_multiplier = parse_fuel_multiplier(self.entry_mult.get())
        except ValueError:
            self.entry_mult.delete(0, "end")
            self.entry_mult.insert(0, str(settings.fuel_multiplier))

    def on_auto_fuel_clicked(self):
        self.calculator.toggle_auto_fuel()
        self.btn_auto_fuel.configure(text=self.calculator.auto_fuel_label())

    # --- Loop ---

    def update_cycle(self):
        try:
            sample = self.connector.dispatch(self.calculator)
            if sample is None:
                self.lbl_status.configure(text=f"STATUS: {self.connector.last_error or 'Waiting for iRacing...'}")
            else:
                self.lbl_status.configure(text=f"STATUS: Connected | Lap {sample.lap_completed} | Fuel {sample.fuel_level:.2f}")
            self.refresh_labels()
        except Exception as e:
            logger.exception("Error in update cycle")
            self.lbl_status.configure(text=f"ERROR: {e}")

        self.after(50, self.update_cycle) # 20Hz is plenty for the display

    def refresh_labels(self):
        status = self.calculator.get_status()
        for key, _, fmt in OUTPUT_ROWS:
            self.output_labels[key].configure(text=fmt.format(status[key]))

        # Redraw chart only when a lap was added
        if status['laps_recorded'] != self.last_chart_laps:
            self.draw_chart()

    def draw_chart(self):
        history = self.calculator.fuel_history()
        self.last_chart_laps = len(history)

        ax = self.ax
        ax.clear()
        ax.set_facecolor("#2b2b2b")
        ax.tick_params(colors="white", labelsize=8)
        ax.set_title("Fuel per lap", color="white", fontsize=10)

        if history:
            laps = range(1, len(history) + 1)
            ax.bar(laps, history, color="#1f6aa5")
            avg = self.calculator.projection.fuel_per_lap
            if avg > 0:
                ax.axhline(avg, color="orange", linestyle="--", linewidth=1)

        self.figure.tight_layout()
        self.canvas.draw_idle()

    def on_close(self):
        self.settings_manager.save(self.calculator.settings)
        self.connector.close()
        self.destroy()
